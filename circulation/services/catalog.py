import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from circulation.core.database import atomic
from circulation.core.errors import InvalidStateError, NotFoundError
from circulation.models import models
from circulation.schemas import schemas

logger = logging.getLogger("circulation.catalog")


def list_books(db: Session, text: Optional[str] = None, genre: Optional[str] = None,
               available_only: bool = False,
               user_id: Optional[int] = None) -> List[Tuple[models.Book, bool]]:
    """Books matching the filters, each paired with whether ``user_id`` holds an open checkout."""
    query = db.query(models.Book).options(joinedload(models.Book.author))
    if text:
        query = query.filter(models.Book.title.ilike(f"%{text}%"))
    if genre:
        query = query.filter(models.Book.genre == genre)
    if available_only:
        query = query.filter(models.Book.available > 0)
    books = query.order_by(models.Book.title, models.Book.id).all()

    mine = set()
    if user_id is not None:
        rows = (
            db.query(models.Checkout.book_id)
            .filter(models.Checkout.user_id == user_id, models.Checkout.returned_at.is_(None))
            .all()
        )
        mine = {r[0] for r in rows}
    return [(book, book.id in mine) for book in books]


def _isbn_taken(db: Session, isbn: str) -> bool:
    return db.query(models.Book.id).filter(models.Book.isbn == isbn).first() is not None


def _username_taken(db: Session, username: str) -> bool:
    return db.query(models.User.id).filter(models.User.username == username).first() is not None


def user_exists(db: Session, user_id: int) -> bool:
    return db.query(models.User.id).filter(models.User.id == user_id).first() is not None


def create_author(db: Session, author_in: schemas.AuthorCreate) -> models.Author:
    author = models.Author(name=author_in.name.strip(), bio=author_in.bio)
    with atomic(db):
        db.add(author)
    db.refresh(author)
    logger.info(f"Created author id={author.id} name={author.name}")
    return author


def list_authors(db: Session) -> List[models.Author]:
    return db.query(models.Author).order_by(models.Author.name).all()


def create_book(db: Session, book_in: schemas.BookCreate) -> models.Book:
    with atomic(db):
        if book_in.isbn and _isbn_taken(db, book_in.isbn):
            raise InvalidStateError("ISBN already exists")
        if book_in.author_id is not None:
            author = db.query(models.Author).filter(models.Author.id == book_in.author_id).first()
            if not author:
                raise NotFoundError("Author not found")
        book = models.Book(
            title=book_in.title.strip(),
            author_id=book_in.author_id,
            isbn=book_in.isbn,
            genre=book_in.genre,
            quantity=book_in.quantity,
            available=book_in.quantity,
        )
        db.add(book)
        try:
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            if book_in.isbn and _isbn_taken(db, book_in.isbn):
                raise InvalidStateError("ISBN already exists") from exc
            raise
    db.refresh(book)
    logger.info(f"Created book id={book.id} title={book.title} quantity={book.quantity}")
    return book


def create_user(db: Session, user_in: schemas.UserCreate) -> models.User:
    username = user_in.username.strip()
    with atomic(db):
        if _username_taken(db, username):
            raise InvalidStateError("Username already registered")
        user = models.User(username=username, role=user_in.role)
        db.add(user)
        try:
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            if _username_taken(db, username):
                raise InvalidStateError("Username already registered") from exc
            raise
    db.refresh(user)
    logger.info(f"Created user id={user.id} username={user.username} role={user.role.value}")
    return user
