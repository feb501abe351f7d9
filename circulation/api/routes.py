from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from circulation.core.database import get_db
from circulation.core.security import Caller, get_caller, get_optional_caller, require_staff
from circulation.schemas import schemas
from circulation.services import analytics, catalog, checkouts, fines, reservations

router = APIRouter(prefix="/api")

# -----------------------------
# Catalog
# -----------------------------
@router.get("/books", response_model=List[schemas.BookListItem])
def list_books(query: Optional[str] = Query(None, description="search title"),
               genre: Optional[str] = None,
               available: bool = False,
               caller: Optional[Caller] = Depends(get_optional_caller),
               db: Session = Depends(get_db)):
    rows = catalog.list_books(db, text=query, genre=genre, available_only=available,
                              user_id=caller.user_id if caller else None)
    return [
        schemas.BookListItem(**schemas.BookOut.model_validate(book).model_dump(), checked_out_by_me=mine)
        for book, mine in rows
    ]

@router.post("/books", response_model=schemas.BookOut, status_code=201)
def create_book(book_in: schemas.BookCreate, _: Caller = Depends(require_staff), db: Session = Depends(get_db)):
    return catalog.create_book(db, book_in)

@router.get("/authors", response_model=List[schemas.AuthorOut])
def list_authors(db: Session = Depends(get_db)):
    return catalog.list_authors(db)

@router.post("/authors", response_model=schemas.AuthorOut, status_code=201)
def create_author(author_in: schemas.AuthorCreate, _: Caller = Depends(require_staff), db: Session = Depends(get_db)):
    return catalog.create_author(db, author_in)

@router.post("/users", response_model=schemas.UserOut, status_code=201)
def create_user(user_in: schemas.UserCreate, _: Caller = Depends(require_staff), db: Session = Depends(get_db)):
    return catalog.create_user(db, user_in)

# -----------------------------
# Checkouts (borrow & return)
# -----------------------------
@router.post("/books/{book_id}/checkout", response_model=schemas.CheckoutResult)
def checkout_book(book_id: int, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    record = checkouts.checkout(db, caller.user_id, book_id)
    return {"message": "Book checked out successfully", "checkout": record}

@router.post("/books/{book_id}/return", response_model=schemas.ReturnResult)
def return_book(book_id: int, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    record, fine = checkouts.return_book(db, caller.user_id, book_id)
    message = "Book returned successfully"
    if fine is not None:
        message += f"; overdue fine of {fine.amount} assessed"
    return {"message": message, "checkout": record, "fine": fine}

@router.get("/checkouts", response_model=List[schemas.CheckoutWithBook])
def list_checkouts(open_only: bool = Query(False, alias="open"), caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return checkouts.list_checkouts(db, caller.user_id, open_only=open_only)

# -----------------------------
# Reservations
# -----------------------------
@router.post("/books/{book_id}/reserve", response_model=schemas.ReservationOut, status_code=201)
def reserve_book(book_id: int, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return reservations.reserve(db, caller.user_id, book_id)

@router.get("/reservations", response_model=List[schemas.ReservationWithBook])
def list_reservations(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return reservations.list_reservations(db, caller.user_id)

@router.post("/reservations/expire", response_model=schemas.ExpiryResult)
def expire_reservations(_: Caller = Depends(require_staff), db: Session = Depends(get_db)):
    return {"expired": reservations.expire_reservations(db)}

@router.post("/reservations/{reservation_id}/cancel", response_model=schemas.CancelResult)
def cancel_reservation(reservation_id: int, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    reservation = reservations.cancel(db, caller.user_id, reservation_id)
    return {"message": "Reservation cancelled successfully", "reservation": reservation}

# -----------------------------
# Fines
# -----------------------------
@router.get("/fines", response_model=List[schemas.FineWithCheckout])
def list_fines(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return fines.list_fines(db, caller.user_id)

@router.post("/fines/{fine_id}/pay", response_model=schemas.PaymentResult)
def pay_fine(fine_id: int, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    fine = fines.pay_fine(db, caller.user_id, fine_id)
    return {"message": "Fine paid successfully", "fine": fine}

# -----------------------------
# Analytics
# -----------------------------
@router.get("/analytics/books", response_model=List[schemas.BookStat])
def analytics_books(_: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return analytics.book_stats(db)

@router.get("/analytics/fines", response_model=schemas.FineStats)
def analytics_fines(_: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return analytics.fine_stats(db)

@router.get("/analytics/activity", response_model=schemas.ActivityStats)
def analytics_activity(_: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    return analytics.activity_stats(db)
