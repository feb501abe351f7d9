"""Read-only rollups over checkouts, reservations and fines."""
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import case, extract, func
from sqlalchemy.orm import Session

from circulation.core.config import ACTIVITY_WINDOW_DAYS, TOP_BOOKS_LIMIT
from circulation.core.database import utcnow
from circulation.models import models


def book_stats(db: Session, limit: int = TOP_BOOKS_LIMIT) -> List[Dict]:
    checkout_counts = (
        db.query(models.Checkout.book_id, func.count(models.Checkout.id).label("cnt"))
        .group_by(models.Checkout.book_id)
        .subquery()
    )
    reservation_counts = (
        db.query(models.Reservation.book_id, func.count(models.Reservation.id).label("cnt"))
        .group_by(models.Reservation.book_id)
        .subquery()
    )
    checkouts = func.coalesce(checkout_counts.c.cnt, 0)
    reserved = func.coalesce(reservation_counts.c.cnt, 0)
    rows = (
        db.query(models.Book.title, checkouts.label("checkouts"), reserved.label("reservations"))
        .outerjoin(checkout_counts, checkout_counts.c.book_id == models.Book.id)
        .outerjoin(reservation_counts, reservation_counts.c.book_id == models.Book.id)
        .order_by(checkouts.desc(), reserved.desc(), models.Book.title)
        .limit(limit)
        .all()
    )
    return [{"title": r[0], "checkouts": r[1], "reservations": r[2]} for r in rows]


def fine_stats(db: Session) -> Dict:
    paid = func.coalesce(func.sum(case((models.Fine.status == models.FineStatus.PAID, models.Fine.amount), else_=0)), 0)
    pending = func.coalesce(func.sum(case((models.Fine.status == models.FineStatus.PENDING, models.Fine.amount), else_=0)), 0)
    total = func.coalesce(func.sum(models.Fine.amount), 0)
    total_amount, paid_amount, pending_amount = db.query(total, paid, pending).one()

    year = extract("year", models.Fine.created_at)
    month = extract("month", models.Fine.created_at)
    monthly = (
        db.query(year.label("y"), month.label("m"), func.sum(models.Fine.amount))
        .group_by(year, month)
        .order_by(year, month)
        .all()
    )
    return {
        "total_amount": int(total_amount),
        "paid_amount": int(paid_amount),
        "pending_amount": int(pending_amount),
        "monthly_stats": [
            {"month": f"{int(y):04d}-{int(m):02d}", "amount": int(amount)} for y, m, amount in monthly
        ],
    }


def _daily_counts(db: Session, column, since: datetime) -> Dict[str, int]:
    day = func.date(column)
    rows = db.query(day, func.count()).filter(column >= since).group_by(day).all()
    return {str(d): c for d, c in rows}


def activity_stats(db: Session, days: int = ACTIVITY_WINDOW_DAYS,
                   now: Optional[datetime] = None) -> Dict:
    """Per-day checkouts, returns and reservations for the trailing ``days`` days, zero-filled."""
    now = now or utcnow()
    first_day = (now - timedelta(days=days - 1)).date()
    since = datetime.combine(first_day, datetime.min.time())

    checkouts = _daily_counts(db, models.Checkout.checked_out_at, since)
    returns = _daily_counts(db, models.Checkout.returned_at, since)
    reserved = _daily_counts(db, models.Reservation.reserved_at, since)

    daily = []
    for offset in range(days):
        key = (first_day + timedelta(days=offset)).isoformat()
        daily.append({
            "date": key,
            "checkouts": checkouts.get(key, 0),
            "returns": returns.get(key, 0),
            "reservations": reserved.get(key, 0),
        })
    return {"daily_activity": daily}
