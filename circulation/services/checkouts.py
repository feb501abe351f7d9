"""Checkout manager.

A (user, book) pair moves ``no checkout -> open -> closed``. Each transition
is one transaction that also touches the inventory ledger, and on return the
fine ledger and the reservation queue.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from circulation.core.config import DEFAULT_POLICY, LoanPolicy
from circulation.core.database import atomic, utcnow
from circulation.core.errors import InvalidStateError, NoActiveCheckoutError, NotFoundError
from circulation.models import models
from circulation.services import catalog, fines, inventory, reservations

logger = logging.getLogger("circulation.checkouts")


def _open_checkout(db: Session, user_id: int, book_id: int) -> Optional[models.Checkout]:
    return (
        db.query(models.Checkout)
        .filter(models.Checkout.user_id == user_id,
                models.Checkout.book_id == book_id,
                models.Checkout.returned_at.is_(None))
        .order_by(models.Checkout.checked_out_at, models.Checkout.id)
        .first()
    )


def checkout(db: Session, user_id: int, book_id: int, now: Optional[datetime] = None,
             policy: LoanPolicy = DEFAULT_POLICY) -> models.Checkout:
    now = now or utcnow()
    with atomic(db):
        if _open_checkout(db, user_id, book_id):
            raise InvalidStateError("You already have this book checked out")
        inventory.decrement_available(db, book_id)
        record = models.Checkout(
            user_id=user_id,
            book_id=book_id,
            checked_out_at=now,
            due_date=now + policy.loan_period,
        )
        db.add(record)
        try:
            db.flush()
        except IntegrityError as exc:
            # work out which constraint fired from committed state
            db.rollback()
            if _open_checkout(db, user_id, book_id):
                raise InvalidStateError("You already have this book checked out") from exc
            if not catalog.user_exists(db, user_id):
                raise NotFoundError("User not found") from exc
            raise
        reservations.fulfill_reservation(db, user_id, book_id)
    db.refresh(record)
    logger.info(f"User {user_id} checked out book {book_id} checkout {record.id} due {record.due_date.isoformat()}")
    return record


def return_book(db: Session, user_id: int, book_id: int, now: Optional[datetime] = None,
                policy: LoanPolicy = DEFAULT_POLICY) -> Tuple[models.Checkout, Optional[models.Fine]]:
    now = now or utcnow()
    with atomic(db):
        inventory.get_book(db, book_id)
        record = _open_checkout(db, user_id, book_id)
        if not record:
            raise NoActiveCheckoutError("No active checkout found")
        closed = (
            db.query(models.Checkout)
            .filter(models.Checkout.id == record.id, models.Checkout.returned_at.is_(None))
            .update({models.Checkout.returned_at: now}, synchronize_session=False)
        )
        if closed == 0:
            # a concurrent return of the same checkout got there first
            raise NoActiveCheckoutError("No active checkout found")
        record.returned_at = now
        restocked = inventory.increment_available(db, book_id)
        fine = fines.assess_fine(db, record, policy)
        if restocked:
            reservations.notify_next_reservation(db, book_id, now)
    db.refresh(record)
    if fine is not None:
        db.refresh(fine)
    logger.info(f"User {user_id} returned book {book_id} checkout {record.id}")
    return record, fine


def list_checkouts(db: Session, user_id: int, open_only: bool = False) -> List[models.Checkout]:
    query = (
        db.query(models.Checkout)
        .options(joinedload(models.Checkout.book).joinedload(models.Book.author))
        .filter(models.Checkout.user_id == user_id)
    )
    if open_only:
        query = query.filter(models.Checkout.returned_at.is_(None))
    return query.order_by(models.Checkout.checked_out_at.desc(), models.Checkout.id.desc()).all()
