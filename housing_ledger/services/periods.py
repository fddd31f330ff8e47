"""Year/month addressing and the ClientMonth lifecycle.

A ClientMonth is created on the first financial write for its period and is
never deleted. It locks once ``today`` passes month end plus the configured
edit window; the transition is applied lazily whenever the month is read
through :meth:`PeriodService.refresh_lock_state`.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from housing_ledger.core.auth import RequestUserContext, ensure_super_admin
from housing_ledger.core.config import get_settings
from housing_ledger.core.errors import NotFoundError
from housing_ledger.models.entities import ClientMonth
from housing_ledger.repositories.ledger_repository import LedgerRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Period:
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="month must be between 1 and 12.",
            )
        if not 1 <= self.year <= 9999:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="year is out of range.",
            )

    @classmethod
    def of(cls, client_month: ClientMonth) -> Period:
        return cls(client_month.year, client_month.month)

    @property
    def month_start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def month_end(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def edit_window_closes(period: Period, window_days: int) -> date:
    """Last day on which ordinary admins may still edit ``period``."""

    return period.month_end + timedelta(days=window_days)


def is_past_edit_window(period: Period, today: date, window_days: int) -> bool:
    return today > edit_window_closes(period, window_days)


def is_editable(client_month: ClientMonth, context: RequestUserContext) -> bool:
    return not client_month.is_locked or context.is_super_admin


class PeriodService:
    """Service owning ClientMonth creation and lock transitions."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = LedgerRepository(db)
        self.settings = get_settings()

    def is_past_edit_window(self, period: Period, today: date) -> bool:
        return is_past_edit_window(period, today, self.settings.edit_window_days)

    def get_client_month(self, client_month_id: UUID) -> ClientMonth:
        client_month = self.repo.get_client_month(client_month_id)
        if client_month is None:
            raise NotFoundError("Client month not found.")
        return client_month

    def find_or_create_client_month(self, *, client_id: UUID, year: int, month: int) -> ClientMonth:
        """Return the single ClientMonth for the key, inserting it when absent.

        The unique constraint on ``(client_id, year, month)`` decides races: a
        losing insert rolls back its savepoint and re-reads the winner.
        """

        period = Period(year, month)
        existing = self.repo.find_client_month(client_id=client_id, year=period.year, month=period.month)
        if existing is not None:
            return existing

        try:
            with self.db.begin_nested():
                return self.repo.add_client_month(
                    ClientMonth(
                        client_id=client_id,
                        year=period.year,
                        month=period.month,
                        is_locked=False,
                        manually_unlocked=False,
                    )
                )
        except IntegrityError:
            winner = self.repo.find_client_month(client_id=client_id, year=period.year, month=period.month)
            if winner is None:
                raise
            logger.info(
                "client month %s for client %s created concurrently; reusing %s",
                period.label,
                client_id,
                winner.id,
            )
            return winner

    def refresh_lock_state(self, client_month: ClientMonth, today: date) -> ClientMonth:
        """Lock ``client_month`` if its edit window has passed.

        Months a super admin explicitly unlocked stay open. Flushes only; the
        caller owns the commit.
        """

        if client_month.is_locked or client_month.manually_unlocked:
            return client_month
        if self.is_past_edit_window(Period.of(client_month), today):
            client_month.is_locked = True
            self.db.flush()
            logger.info("client month %s (%s) locked after edit window", client_month.id, Period.of(client_month).label)
        return client_month

    def set_lock(self, *, context: RequestUserContext, client_month_id: UUID, locked: bool) -> ClientMonth:
        ensure_super_admin(context)
        client_month = self.get_client_month(client_month_id)
        client_month.is_locked = locked
        client_month.manually_unlocked = not locked
        self.db.commit()
        self.db.refresh(client_month)
        logger.info(
            "client month %s %s by %s",
            client_month.id,
            "locked" if locked else "unlocked",
            context.email,
        )
        return client_month

    def read_client_month(self, *, client_month_id: UUID, today: date) -> ClientMonth:
        client_month = self.get_client_month(client_month_id)
        self.refresh_lock_state(client_month, today)
        self.db.commit()
        return client_month

    def list_client_months(self, *, client_id: UUID, today: date, year: int | None = None) -> list[ClientMonth]:
        rows = self.repo.list_client_months(client_ids=[client_id], year=year)
        for row in rows:
            self.refresh_lock_state(row, today)
        self.db.commit()
        return rows

    @staticmethod
    def serialize_client_month(client_month: ClientMonth) -> dict[str, object]:
        return {
            "id": str(client_month.id),
            "client_id": str(client_month.client_id),
            "year": client_month.year,
            "month": client_month.month,
            "label": Period.of(client_month).label,
            "is_locked": client_month.is_locked,
            "manually_unlocked": client_month.manually_unlocked,
        }
