from datetime import datetime, timedelta

import pytest

from circulation.core.config import LoanPolicy
from circulation.core.errors import NotFoundError
from circulation.models import models
from circulation.services import checkouts, fines

DUE = datetime(2024, 3, 15, 12, 0, 0)
DAILY = LoanPolicy(fine_unit=timedelta(days=1), fine_rate=50)


@pytest.mark.parametrize("late_by, expected", [
    (timedelta(days=-2), 0),
    (timedelta(0), 0),
    (timedelta(hours=23, minutes=59), 0),
    (timedelta(days=1), 50),
    (timedelta(days=3), 150),
    (timedelta(days=3, hours=20), 150),
])
def test_compute_fine_amount(late_by, expected):
    assert fines.compute_fine_amount(DUE, DUE + late_by, DAILY) == expected


def _overdue_fine(db, user_id, book, checked_out, returned):
    checkouts.checkout(db, user_id, book.id, now=checked_out, policy=DAILY)
    _, fine = checkouts.return_book(db, user_id, book.id, now=returned, policy=DAILY)
    return fine


def test_pay_fine_then_pay_again(db, users, make_book):
    book = make_book(quantity=1)
    start = datetime(2024, 1, 1)
    fine = _overdue_fine(db, users["alice"], book, start, start + timedelta(days=20))
    paid_when = start + timedelta(days=21)

    paid = fines.pay_fine(db, users["alice"], fine.id, now=paid_when)
    assert paid.status == models.FineStatus.PAID
    assert paid.paid_at == paid_when

    with pytest.raises(NotFoundError):
        fines.pay_fine(db, users["alice"], fine.id)


def test_cannot_pay_someone_elses_fine(db, users, make_book):
    book = make_book(quantity=1)
    start = datetime(2024, 1, 1)
    fine = _overdue_fine(db, users["alice"], book, start, start + timedelta(days=16))
    with pytest.raises(NotFoundError):
        fines.pay_fine(db, users["bob"], fine.id)
    db.expire_all()
    assert db.get(models.Fine, fine.id).status == models.FineStatus.PENDING


def test_pay_missing_fine(db, users):
    with pytest.raises(NotFoundError):
        fines.pay_fine(db, users["alice"], 12345)


def test_list_fines_newest_first_with_checkout_and_book(db, users, make_book):
    dune = make_book(title="Dune", quantity=1)
    emma = make_book(title="Emma", quantity=1)
    start = datetime(2024, 1, 1)
    _overdue_fine(db, users["alice"], dune, start, start + timedelta(days=15))
    _overdue_fine(db, users["alice"], emma, start, start + timedelta(days=30))
    _overdue_fine(db, users["bob"], dune, start + timedelta(days=40), start + timedelta(days=60))

    listed = fines.list_fines(db, users["alice"])
    assert [f.checkout.book.title for f in listed] == ["Emma", "Dune"]
    assert [f.amount for f in listed] == [800, 50]
