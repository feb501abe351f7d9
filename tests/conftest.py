import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from circulation.core.database import Base, get_db, make_engine
from circulation.main import app
from circulation.models import models


@pytest.fixture
def engine(tmp_path):
    # file-backed so concurrent sessions share one database
    eng = make_engine(f"sqlite:///{tmp_path / 'circulation_test.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def users(db):
    """Three patrons and a librarian, ids 1-4."""
    db.add_all([
        models.User(username="alice"),
        models.User(username="bob"),
        models.User(username="carol"),
        models.User(username="libby", role=models.Role.LIBRARIAN),
    ])
    db.commit()
    return {u.username: u.id for u in db.query(models.User).all()}


@pytest.fixture
def make_book(db):
    def _make(title="Dune", quantity=2, available=None, genre=None, isbn=None):
        book = models.Book(title=title, quantity=quantity,
                           available=quantity if available is None else available,
                           genre=genre, isbn=isbn)
        db.add(book)
        db.commit()
        db.refresh(book)
        return book
    return _make


@pytest.fixture
def auth():
    """Headers the upstream auth gateway would forward."""
    def _auth(user_id, role="user"):
        return {"X-User-Id": str(user_id), "X-User-Role": role}
    return _auth
