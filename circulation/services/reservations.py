import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from circulation.core.config import DEFAULT_POLICY, LoanPolicy
from circulation.core.database import atomic, utcnow
from circulation.core.errors import DuplicateReservationError, InvalidStateError, NotFoundError
from circulation.models import models
from circulation.services.catalog import user_exists
from circulation.services.inventory import get_book

logger = logging.getLogger("circulation.reservations")

PENDING = models.ReservationStatus.PENDING


def _pending_for(db: Session, user_id: int, book_id: int) -> Optional[models.Reservation]:
    return (
        db.query(models.Reservation)
        .filter(models.Reservation.user_id == user_id,
                models.Reservation.book_id == book_id,
                models.Reservation.status == PENDING)
        .first()
    )


def reserve(db: Session, user_id: int, book_id: int, now: Optional[datetime] = None,
            policy: LoanPolicy = DEFAULT_POLICY) -> models.Reservation:
    """Place a hold on a book.

    Current availability is not checked: patrons may queue for a book that
    still has copies on the shelf.
    """
    now = now or utcnow()
    with atomic(db):
        get_book(db, book_id)
        if _pending_for(db, user_id, book_id):
            raise DuplicateReservationError("You already have a pending reservation for this book")
        reservation = models.Reservation(
            user_id=user_id,
            book_id=book_id,
            reserved_at=now,
            status=PENDING,
            notification_sent=False,
            expires_at=now + policy.hold_window,
        )
        db.add(reservation)
        try:
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            if _pending_for(db, user_id, book_id):
                # lost a race with a concurrent reserve for the same pair
                raise DuplicateReservationError("You already have a pending reservation for this book") from exc
            if not user_exists(db, user_id):
                raise NotFoundError("User not found") from exc
            raise
    db.refresh(reservation)
    logger.info(f"User {user_id} reserved book {book_id} reservation {reservation.id}")
    return reservation


def cancel(db: Session, user_id: int, reservation_id: int) -> models.Reservation:
    with atomic(db):
        reservation = (
            db.query(models.Reservation)
            .filter(models.Reservation.id == reservation_id,
                    models.Reservation.user_id == user_id)
            .first()
        )
        if not reservation:
            raise NotFoundError("Reservation not found")
        if reservation.status != PENDING:
            raise InvalidStateError(f"Reservation is {reservation.status.value}, only pending reservations can be cancelled")
        updated = (
            db.query(models.Reservation)
            .filter(models.Reservation.id == reservation_id, models.Reservation.status == PENDING)
            .update({models.Reservation.status: models.ReservationStatus.CANCELLED},
                    synchronize_session=False)
        )
        if updated == 0:
            raise InvalidStateError("Reservation is no longer pending")
    db.refresh(reservation)
    logger.info(f"User {user_id} cancelled reservation {reservation_id}")
    return reservation


def list_reservations(db: Session, user_id: int) -> List[models.Reservation]:
    return (
        db.query(models.Reservation)
        .options(joinedload(models.Reservation.book).joinedload(models.Book.author))
        .filter(models.Reservation.user_id == user_id)
        .order_by(models.Reservation.reserved_at.desc(), models.Reservation.id.desc())
        .all()
    )


def fulfill_reservation(db: Session, user_id: int, book_id: int) -> bool:
    """Mark the caller's pending hold on a book fulfilled. Does not commit."""
    updated = (
        db.query(models.Reservation)
        .filter(models.Reservation.user_id == user_id,
                models.Reservation.book_id == book_id,
                models.Reservation.status == PENDING)
        .update({models.Reservation.status: models.ReservationStatus.FULFILLED},
                synchronize_session=False)
    )
    if updated:
        logger.info(f"Reservation for book {book_id} fulfilled by checkout of user {user_id}")
    return bool(updated)


def notify_next_reservation(db: Session, book_id: int, now: datetime) -> Optional[models.Reservation]:
    """Flag the oldest live, un-notified hold on a book once a copy comes back.

    Does not commit. Delivering the notice is up to whoever polls
    ``notification_sent``.
    """
    reservation = (
        db.query(models.Reservation)
        .filter(models.Reservation.book_id == book_id,
                models.Reservation.status == PENDING,
                models.Reservation.notification_sent.is_(False),
                models.Reservation.expires_at > now)
        .order_by(models.Reservation.reserved_at, models.Reservation.id)
        .first()
    )
    if not reservation:
        return None
    reservation.notification_sent = True
    db.flush()
    logger.info(f"Book {book_id} available again; notifying user {reservation.user_id} (reservation {reservation.id})")
    return reservation


def expire_reservations(db: Session, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    with atomic(db):
        expired = (
            db.query(models.Reservation)
            .filter(models.Reservation.status == PENDING, models.Reservation.expires_at <= now)
            .update({models.Reservation.status: models.ReservationStatus.EXPIRED},
                    synchronize_session=False)
        )
    logger.info(f"Expired {expired} reservation(s)")
    return expired
