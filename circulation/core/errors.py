class CirculationError(Exception):
    """Base error for circulation rule violations.

    ``status_code`` is the HTTP status the API boundary reports it with.
    """
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(CirculationError):
    """Entity is missing or not owned by the caller."""
    status_code = 404


class InvalidStateError(CirculationError):
    """Operation is illegal for the entity's current status."""
    status_code = 400


class UnavailableError(CirculationError):
    """No copies left to check out."""
    status_code = 400


class NoActiveCheckoutError(CirculationError):
    """Return attempted without an open checkout."""
    status_code = 400


class DuplicateReservationError(CirculationError):
    """Caller already holds a pending reservation for the book."""
    status_code = 400


class UnauthenticatedError(CirculationError):
    status_code = 401


class UnauthorizedError(CirculationError):
    status_code = 403


class StorageError(CirculationError):
    status_code = 500
