"""Small maintenance utilities: create tables, seed demo data, run the expiry sweep."""
import argparse
import logging

from circulation.core.config import LOG_FORMAT, LOG_LEVEL
from circulation.core.database import Base, SessionLocal, engine
from circulation.models import models
from circulation.services import reservations

logger = logging.getLogger("circulation.cli")


def seed(db) -> None:
    # quick idempotent seed
    if db.query(models.User).count() == 0:
        db.add_all([
            models.User(username="alice", role=models.Role.USER),
            models.User(username="bob", role=models.Role.USER),
            models.User(username="libby", role=models.Role.LIBRARIAN),
        ])
    if db.query(models.Book).count() == 0:
        kleppmann = models.Author(name="Martin Kleppmann", bio="Researcher in distributed systems.")
        herbert = models.Author(name="Frank Herbert")
        db.add_all([kleppmann, herbert])
        db.flush()
        db.add_all([
            models.Book(title="Designing Data-Intensive Applications", author_id=kleppmann.id,
                        isbn="978-1449373320", genre="Computing", quantity=2, available=2),
            models.Book(title="Dune", author_id=herbert.id, isbn="978-0441172719",
                        genre="Science Fiction", quantity=3, available=3),
        ])
    db.commit()
    logger.info("Seeded sample data")


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Library circulation utilities")
    parser.add_argument("--initdb", action="store_true", help="Create tables")
    parser.add_argument("--seed", action="store_true", help="Seed sample data")
    parser.add_argument("--expire-reservations", action="store_true",
                        help="Expire pending reservations past their hold window")
    args = parser.parse_args(argv)

    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if args.seed:
            seed(db)
        if args.expire_reservations:
            count = reservations.expire_reservations(db)
            print(f"Expired {count} reservation(s)")
    finally:
        db.close()
    print("Done")


if __name__ == "__main__":
    main()
