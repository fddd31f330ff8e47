from __future__ import annotations

from collections.abc import Generator
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import housing_ledger.models.entities  # noqa: F401
from housing_ledger.core.auth import ensure_user_principal
from housing_ledger.core.clock import get_today
from housing_ledger.db.base import Base
from housing_ledger.db.dependencies import get_db_session
from housing_ledger.main import create_app
from housing_ledger.models.entities import UserRole

# 2025-03 and 2025-04 are inside the edit window on this date; 2025-02 is not.
TODAY = date(2025, 4, 20)

SUPER_ADMIN_EMAIL = "root@test.local"


def identity_headers(email: str = "worker@test.local", display_name: str = "Worker") -> dict[str, str]:
    return {"X-USER-EMAIL": email, "X-USER-NAME": display_name}


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_db
    app.dependency_overrides[get_today] = lambda: TODAY
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def super_admin(db_session: Session) -> dict[str, str]:
    """Headers of a persisted super admin."""

    ensure_user_principal(db_session, email=SUPER_ADMIN_EMAIL, display_name="Root", role=UserRole.SUPER_ADMIN)
    return identity_headers(SUPER_ADMIN_EMAIL, "Root")
