"""Database dependencies for FastAPI endpoints."""

from collections.abc import Generator

from sqlalchemy.orm import Session


def get_db_session() -> Generator[Session, None, None]:
    """One session per request; anything left uncommitted on error is rolled back."""

    from housing_ledger.db.session import SessionLocal

    session = SessionLocal()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
