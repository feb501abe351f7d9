"""Inventory ledger: the only writer of ``books.available``.

Both operations are single conditional UPDATEs whose affected-row count
decides the outcome, so two callers racing for the last copy cannot both
win. Neither commits; callers compose them into their own ``atomic`` unit.
"""
import logging

from sqlalchemy.orm import Session

from circulation.core.errors import NotFoundError, UnavailableError
from circulation.models import models

logger = logging.getLogger("circulation.inventory")


def get_book(db: Session, book_id: int) -> models.Book:
    book = db.query(models.Book).filter(models.Book.id == book_id).first()
    if not book:
        raise NotFoundError("Book not found")
    return book


def decrement_available(db: Session, book_id: int) -> None:
    updated = (
        db.query(models.Book)
        .filter(models.Book.id == book_id, models.Book.available > 0)
        .update({models.Book.available: models.Book.available - 1}, synchronize_session=False)
    )
    if updated == 0:
        # distinguish a missing book from an exhausted one
        get_book(db, book_id)
        raise UnavailableError("Book not available")


def increment_available(db: Session, book_id: int) -> bool:
    """Put one copy back, never exceeding ``quantity``.

    Returns False when the counter was already at quantity.
    """
    updated = (
        db.query(models.Book)
        .filter(models.Book.id == book_id, models.Book.available < models.Book.quantity)
        .update({models.Book.available: models.Book.available + 1}, synchronize_session=False)
    )
    if updated == 0:
        logger.warning(f"Book {book_id} already at full quantity; availability not incremented")
        return False
    return True
