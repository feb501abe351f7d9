from datetime import datetime, timedelta

import pytest

from circulation.core.config import LoanPolicy
from circulation.core.errors import DuplicateReservationError, InvalidStateError, NotFoundError
from circulation.models import models
from circulation.services import checkouts, reservations

NOW = datetime(2024, 3, 1, 10, 0, 0)
POLICY = LoanPolicy(hold_window=timedelta(days=3))


def test_reserve_creates_pending_hold(db, users, make_book):
    book = make_book(quantity=1, available=0)
    r = reservations.reserve(db, users["alice"], book.id, now=NOW, policy=POLICY)
    assert r.status == models.ReservationStatus.PENDING
    assert r.reserved_at == NOW
    assert r.expires_at == NOW + timedelta(days=3)
    assert r.notification_sent is False


def test_reserve_allowed_while_copies_available(db, users, make_book):
    book = make_book(quantity=2)
    r = reservations.reserve(db, users["alice"], book.id, now=NOW)
    assert r.status == models.ReservationStatus.PENDING


def test_reserve_missing_book(db, users):
    with pytest.raises(NotFoundError):
        reservations.reserve(db, users["alice"], 404, now=NOW)


def test_reserve_by_unknown_user_is_not_reported_as_duplicate(db, users, make_book):
    book = make_book(quantity=1, available=0)
    with pytest.raises(NotFoundError, match="User not found"):
        reservations.reserve(db, 4242, book.id, now=NOW)
    assert db.query(models.Reservation).count() == 0


def test_second_pending_reservation_rejected(db, users, make_book):
    book = make_book(quantity=1, available=0)
    reservations.reserve(db, users["alice"], book.id, now=NOW)
    with pytest.raises(DuplicateReservationError):
        reservations.reserve(db, users["alice"], book.id, now=NOW)
    # other patrons can still queue
    reservations.reserve(db, users["bob"], book.id, now=NOW)
    assert db.query(models.Reservation).count() == 2


def test_reserve_again_after_cancel(db, users, make_book):
    book = make_book(quantity=1, available=0)
    first = reservations.reserve(db, users["alice"], book.id, now=NOW)
    reservations.cancel(db, users["alice"], first.id)
    second = reservations.reserve(db, users["alice"], book.id, now=NOW)
    assert second.id != first.id


def test_cancel_pending_then_cancel_again(db, users, make_book):
    book = make_book(quantity=1, available=0)
    r = reservations.reserve(db, users["alice"], book.id, now=NOW)
    cancelled = reservations.cancel(db, users["alice"], r.id)
    assert cancelled.status == models.ReservationStatus.CANCELLED
    with pytest.raises(InvalidStateError):
        reservations.cancel(db, users["alice"], r.id)


def test_cancel_someone_elses_reservation(db, users, make_book):
    book = make_book(quantity=1, available=0)
    r = reservations.reserve(db, users["alice"], book.id, now=NOW)
    with pytest.raises(NotFoundError):
        reservations.cancel(db, users["bob"], r.id)
    with pytest.raises(NotFoundError):
        reservations.cancel(db, users["alice"], r.id + 100)


def test_checkout_fulfils_callers_reservation(db, users, make_book):
    book = make_book(quantity=1)
    r = reservations.reserve(db, users["alice"], book.id, now=NOW)
    checkouts.checkout(db, users["alice"], book.id, now=NOW)
    db.expire_all()
    assert db.get(models.Reservation, r.id).status == models.ReservationStatus.FULFILLED
    with pytest.raises(InvalidStateError):
        reservations.cancel(db, users["alice"], r.id)


def test_return_notifies_oldest_pending_reservation(db, users, make_book):
    book = make_book(quantity=1)
    checkouts.checkout(db, users["alice"], book.id, now=NOW)
    early = reservations.reserve(db, users["bob"], book.id, now=NOW + timedelta(hours=1))
    late = reservations.reserve(db, users["carol"], book.id, now=NOW + timedelta(hours=2))

    checkouts.return_book(db, users["alice"], book.id, now=NOW + timedelta(days=1))
    db.expire_all()
    assert db.get(models.Reservation, early.id).notification_sent is True
    assert db.get(models.Reservation, late.id).notification_sent is False


def test_return_at_full_shelf_does_not_notify(db, users, make_book):
    book = make_book(quantity=1)
    checkouts.checkout(db, users["alice"], book.id, now=NOW)
    hold = reservations.reserve(db, users["bob"], book.id, now=NOW + timedelta(hours=1))
    # counter already at quantity, so the return puts no copy back
    db.get(models.Book, book.id).available = 1
    db.commit()

    checkouts.return_book(db, users["alice"], book.id, now=NOW + timedelta(days=1))
    db.expire_all()
    assert db.get(models.Book, book.id).available == 1
    assert db.get(models.Reservation, hold.id).notification_sent is False


def test_return_skips_expired_holds_when_notifying(db, users, make_book):
    book = make_book(quantity=1)
    checkouts.checkout(db, users["alice"], book.id, now=NOW)
    stale = reservations.reserve(db, users["bob"], book.id, now=NOW, policy=POLICY)
    fresh = reservations.reserve(db, users["carol"], book.id, now=NOW + timedelta(days=4), policy=POLICY)

    checkouts.return_book(db, users["alice"], book.id, now=NOW + timedelta(days=5))
    db.expire_all()
    assert db.get(models.Reservation, stale.id).notification_sent is False
    assert db.get(models.Reservation, fresh.id).notification_sent is True


def test_expiry_sweep(db, users, make_book):
    book = make_book(quantity=1, available=0)
    old = reservations.reserve(db, users["alice"], book.id, now=NOW, policy=POLICY)
    current = reservations.reserve(db, users["bob"], book.id, now=NOW + timedelta(days=2), policy=POLICY)

    assert reservations.expire_reservations(db, now=NOW + timedelta(days=3)) == 1
    db.expire_all()
    assert db.get(models.Reservation, old.id).status == models.ReservationStatus.EXPIRED
    assert db.get(models.Reservation, current.id).status == models.ReservationStatus.PENDING
    with pytest.raises(InvalidStateError):
        reservations.cancel(db, users["alice"], old.id)
    # an expired hold no longer blocks a new one
    reservations.reserve(db, users["alice"], book.id, now=NOW + timedelta(days=3))


def test_list_reservations_newest_first(db, users, make_book):
    dune = make_book(title="Dune", quantity=1, available=0)
    emma = make_book(title="Emma", quantity=1, available=0)
    reservations.reserve(db, users["alice"], dune.id, now=NOW)
    reservations.reserve(db, users["alice"], emma.id, now=NOW + timedelta(minutes=5))
    reservations.reserve(db, users["bob"], emma.id, now=NOW)

    listed = reservations.list_reservations(db, users["alice"])
    assert [r.book.title for r in listed] == ["Emma", "Dune"]
