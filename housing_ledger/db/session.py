"""Engine and session factory for the configured ledger database."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from housing_ledger.core.config import get_settings

_settings = get_settings()

engine = create_engine(_settings.database_url, echo=_settings.database_echo, pool_pre_ping=True, future=True)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
