import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from circulation.core.config import DEFAULT_POLICY, LoanPolicy
from circulation.core.database import atomic, utcnow
from circulation.core.errors import NotFoundError
from circulation.models import models

logger = logging.getLogger("circulation.fines")


def compute_fine_amount(due_date: datetime, returned_at: datetime,
                        policy: LoanPolicy = DEFAULT_POLICY) -> int:
    """Whole overdue units times the per-unit rate, in cents."""
    overdue = returned_at - due_date
    units = max(0, overdue // policy.fine_unit)
    return units * policy.fine_rate


def assess_fine(db: Session, checkout: models.Checkout,
                policy: LoanPolicy = DEFAULT_POLICY) -> Optional[models.Fine]:
    """Record a pending fine for a closed checkout if it came back late.

    Runs inside the caller's return transaction; does not commit.
    """
    amount = compute_fine_amount(checkout.due_date, checkout.returned_at, policy)
    if amount <= 0:
        return None
    fine = models.Fine(
        user_id=checkout.user_id,
        checkout_id=checkout.id,
        amount=amount,
        status=models.FineStatus.PENDING,
        created_at=checkout.returned_at,
    )
    db.add(fine)
    db.flush()
    logger.info(f"Fine {fine.id} of {amount} assessed on checkout {checkout.id} for user {checkout.user_id}")
    return fine


def pay_fine(db: Session, user_id: int, fine_id: int, now: Optional[datetime] = None) -> models.Fine:
    now = now or utcnow()
    with atomic(db):
        updated = (
            db.query(models.Fine)
            .filter(models.Fine.id == fine_id,
                    models.Fine.user_id == user_id,
                    models.Fine.status == models.FineStatus.PENDING)
            .update({models.Fine.status: models.FineStatus.PAID, models.Fine.paid_at: now},
                    synchronize_session=False)
        )
        if updated == 0:
            raise NotFoundError("Fine not found or already paid")
    fine = db.query(models.Fine).filter(models.Fine.id == fine_id).first()
    logger.info(f"User {user_id} paid fine {fine_id}")
    return fine


def list_fines(db: Session, user_id: int) -> List[models.Fine]:
    return (
        db.query(models.Fine)
        .options(joinedload(models.Fine.checkout)
                 .joinedload(models.Checkout.book)
                 .joinedload(models.Book.author))
        .filter(models.Fine.user_id == user_id)
        .order_by(models.Fine.created_at.desc(), models.Fine.id.desc())
        .all()
    )
