"""Mutation guard for a client's monthly financial records."""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.orm import Session

from housing_ledger.core.auth import RequestUserContext
from housing_ledger.core.errors import EditWindowClosedError, ServiceAgreementExpiredError
from housing_ledger.models.entities import Client, ClientMonth
from housing_ledger.repositories.ledger_repository import LedgerRepository
from housing_ledger.services.periods import Period, PeriodService

logger = logging.getLogger(__name__)


class AccessGate:
    """Decide whether an actor may write financial rows for a client month.

    Order of checks: super admin bypass, then month lock, then service
    agreement expiry. A client with no service agreement on file is not
    blocked; only an agreement whose latest expiry is in the past is.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = LedgerRepository(db)
        self.periods = PeriodService(db)

    def service_agreement_status(self, client: Client, today: date) -> dict[str, object]:
        agreements = self.repo.list_service_agreements_with_expiry(client.id)
        latest = agreements[0] if agreements else None
        has_agreement = latest is not None or self.repo.count_service_agreements(client.id) > 0
        return {
            "hasAgreement": has_agreement,
            "expiryDate": latest.expiry_date.isoformat() if latest else None,
            "expired": latest is not None and latest.expiry_date < today,
            "overridden": client.has_status_override,
        }

    def is_month_locked(self, client_month: ClientMonth | None, period: Period, today: date) -> bool:
        if client_month is not None:
            return self.periods.refresh_lock_state(client_month, today).is_locked
        # Not created yet: apply the same window rule to the addressed period.
        return self.periods.is_past_edit_window(period, today)

    def ensure_can_mutate(
        self,
        *,
        context: RequestUserContext,
        client: Client,
        client_month: ClientMonth | None,
        period: Period,
        today: date,
    ) -> None:
        if context.is_super_admin:
            return

        if self.is_month_locked(client_month, period, today):
            logger.info(
                "rejected write by %s to locked month %s of client %s",
                context.email,
                period.label,
                client.id,
            )
            raise EditWindowClosedError()

        agreement = self.service_agreement_status(client, today)
        if agreement["expired"] and not agreement["overridden"]:
            logger.info(
                "rejected write by %s for client %s: service agreement expired %s",
                context.email,
                client.id,
                agreement["expiryDate"],
            )
            raise ServiceAgreementExpiredError()
