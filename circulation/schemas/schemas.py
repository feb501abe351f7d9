from pydantic import BaseModel, ConfigDict, Field, constr, field_validator
from datetime import datetime
from typing import List, Optional

from circulation.models.models import FineStatus, ReservationStatus, Role


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class AuthorCreate(BaseModel):
    name: constr(min_length=1)
    bio: Optional[str] = None


class AuthorOut(ORMModel):
    id: int
    name: str
    bio: Optional[str] = None


class BookCreate(BaseModel):
    title: constr(min_length=1)
    author_id: Optional[int] = None
    isbn: Optional[str] = None
    genre: Optional[str] = None
    quantity: int = Field(default=1, ge=0)

    @field_validator("isbn", "genre")
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return v
        return v.strip() or None


class BookOut(ORMModel):
    id: int
    title: str
    isbn: Optional[str] = None
    genre: Optional[str] = None
    quantity: int
    available: int
    created_at: datetime
    author: Optional[AuthorOut] = None


class BookListItem(BookOut):
    checked_out_by_me: bool = False


class UserCreate(BaseModel):
    username: constr(strip_whitespace=True, min_length=1)
    role: Role = Role.USER


class UserOut(ORMModel):
    id: int
    username: str
    role: Role
    created_at: datetime


class CheckoutOut(ORMModel):
    id: int
    user_id: int
    book_id: int
    checked_out_at: datetime
    due_date: datetime
    returned_at: Optional[datetime] = None


class CheckoutWithBook(CheckoutOut):
    book: BookOut


class ReservationOut(ORMModel):
    id: int
    user_id: int
    book_id: int
    reserved_at: datetime
    status: ReservationStatus
    notification_sent: bool
    expires_at: datetime


class ReservationWithBook(ReservationOut):
    book: BookOut


class FineOut(ORMModel):
    id: int
    user_id: int
    checkout_id: int
    amount: int
    status: FineStatus
    created_at: datetime
    paid_at: Optional[datetime] = None


class FineWithCheckout(FineOut):
    checkout: CheckoutWithBook


class MessageOut(BaseModel):
    message: str


class CheckoutResult(MessageOut):
    checkout: CheckoutOut


class ReturnResult(MessageOut):
    checkout: CheckoutOut
    fine: Optional[FineOut] = None


class CancelResult(MessageOut):
    reservation: ReservationOut


class PaymentResult(MessageOut):
    fine: FineOut


class ExpiryResult(BaseModel):
    expired: int


class BookStat(BaseModel):
    title: str
    checkouts: int
    reservations: int


class MonthlyFine(BaseModel):
    month: str
    amount: int


class FineStats(BaseModel):
    total_amount: int
    paid_amount: int
    pending_amount: int
    monthly_stats: List[MonthlyFine]


class DailyActivity(BaseModel):
    date: str
    checkouts: int
    returns: int
    reservations: int


class ActivityStats(BaseModel):
    daily_activity: List[DailyActivity]
