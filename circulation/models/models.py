import enum

from sqlalchemy import (Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Enum,
                        CheckConstraint, Index, text)
from sqlalchemy.orm import relationship

from circulation.core.database import Base, utcnow


class Role(str, enum.Enum):
    ADMIN = "admin"
    LIBRARIAN = "librarian"
    USER = "user"


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class FineStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"


def _enum_column(enum_cls):
    # store the lowercase values, not the member names
    return Enum(enum_cls, native_enum=False, length=16,
                values_callable=lambda e: [m.value for m in e])


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    role = Column(_enum_column(Role), nullable=False, default=Role.USER)
    created_at = Column(DateTime, default=utcnow)


class Author(Base):
    __tablename__ = "authors"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    bio = Column(Text, nullable=True)

    books = relationship("Book", back_populates="author")


class Book(Base):
    __tablename__ = "books"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_books_quantity_non_negative"),
        CheckConstraint("available >= 0 AND available <= quantity", name="ck_books_available_range"),
    )
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("authors.id"), nullable=True, index=True)
    isbn = Column(String, unique=True, index=True, nullable=True)
    genre = Column(String, nullable=True, index=True)
    quantity = Column(Integer, nullable=False, default=1)
    available = Column(Integer, nullable=False, default=1, index=True)
    created_at = Column(DateTime, default=utcnow)

    author = relationship("Author", back_populates="books")
    checkouts = relationship("Checkout", back_populates="book")
    reservations = relationship("Reservation", back_populates="book")


class Checkout(Base):
    __tablename__ = "checkouts"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False, index=True)
    checked_out_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    due_date = Column(DateTime, nullable=False)
    returned_at = Column(DateTime, nullable=True, index=True)

    book = relationship("Book", back_populates="checkouts")
    fine = relationship("Fine", back_populates="checkout", uselist=False)

    @property
    def is_open(self) -> bool:
        return self.returned_at is None


# one open checkout per (user, book)
Index("uq_checkouts_open_user_book", Checkout.user_id, Checkout.book_id, unique=True,
      sqlite_where=text("returned_at IS NULL"), postgresql_where=text("returned_at IS NULL"))


class Reservation(Base):
    __tablename__ = "reservations"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False, index=True)
    reserved_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    status = Column(_enum_column(ReservationStatus), nullable=False,
                    default=ReservationStatus.PENDING, index=True)
    notification_sent = Column(Boolean, nullable=False, default=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    book = relationship("Book", back_populates="reservations")


# one pending reservation per (user, book)
Index("uq_reservations_pending_user_book", Reservation.user_id, Reservation.book_id, unique=True,
      sqlite_where=text("status = 'pending'"), postgresql_where=text("status = 'pending'"))


class Fine(Base):
    __tablename__ = "fines"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_fines_amount_non_negative"),
    )
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    checkout_id = Column(Integer, ForeignKey("checkouts.id"), nullable=False, unique=True)
    amount = Column(Integer, nullable=False)
    status = Column(_enum_column(FineStatus), nullable=False, default=FineStatus.PENDING, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    paid_at = Column(DateTime, nullable=True)

    checkout = relationship("Checkout", back_populates="fine")
