"""Pool-fund rule engine.

A client month contributes to the pool fund only when it received housing
support and carried at least one deduction (rent paid or expenses). Its
contribution is ``housing_support - (rent_paid + total_expenses)`` and may be
negative. Remaining balance is the same subtraction applied to every month
without the inclusion gate.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from housing_ledger.core import money
from housing_ledger.models.entities import Client, ClientMonth, PoolFund
from housing_ledger.repositories.ledger_repository import LedgerRepository
from housing_ledger.services.aggregation import Aggregator, ClientMonthTotals, MonthlyTotals

logger = logging.getLogger(__name__)


def is_pool_contribution(totals: MonthlyTotals) -> bool:
    return money.is_positive(totals.housing_support) and (
        money.is_positive(totals.rent_paid) or money.is_positive(totals.total_expenses)
    )


def pool_amount(totals: MonthlyTotals) -> Decimal | None:
    """Contribution of one month, or ``None`` when the month is excluded."""

    if not is_pool_contribution(totals):
        return None
    return money.subtract(totals.housing_support, money.add(totals.rent_paid, totals.total_expenses))


def remaining_balance(totals: MonthlyTotals) -> Decimal:
    return money.subtract(money.subtract(totals.housing_support, totals.rent_paid), totals.total_expenses)


@dataclass(slots=True)
class PoolContribution:
    client_id: UUID
    client_name: str
    county: str | None
    housing_support: Decimal = money.ZERO
    rent_paid: Decimal = money.ZERO
    expenses: Decimal = money.ZERO
    pool_amount: Decimal = money.ZERO

    def as_dict(self) -> dict[str, object]:
        return {
            "clientId": str(self.client_id),
            "clientName": self.client_name,
            "county": self.county,
            "housingSupport": money.to_wire(self.housing_support),
            "rentPaid": money.to_wire(self.rent_paid),
            "expenses": money.to_wire(self.expenses),
            "poolAmount": money.to_wire(self.pool_amount),
        }


@dataclass(slots=True)
class PoolFundSummary:
    total_pool_fund: Decimal = money.ZERO
    total_contributors: int = 0
    positive_contributors: int = 0
    negative_contributors: int = 0
    contributions: list[PoolContribution] = field(default_factory=list)

    def as_dict(self) -> dict[str, object]:
        return {
            "totalPoolFund": money.to_wire(self.total_pool_fund),
            "totalContributors": self.total_contributors,
            "positiveContributors": self.positive_contributors,
            "negativeContributors": self.negative_contributors,
            "contributions": [row.as_dict() for row in self.contributions],
        }


def summarize_contributions(
    month_rows: Iterable[ClientMonthTotals],
    clients: Mapping[UUID, Client],
    county_names: Mapping[UUID, str] | None = None,
) -> PoolFundSummary:
    """Roll included months up per client.

    Ties on pool amount keep the order of ``clients``; the listing is a
    stable sort on pool amount, most positive first.
    """

    county_names = county_names or {}
    client_order = {client_id: index for index, client_id in enumerate(clients)}
    by_client: dict[UUID, PoolContribution] = {}

    for row in month_rows:
        amount = pool_amount(row.totals)
        if amount is None:
            continue
        contribution = by_client.get(row.client_id)
        if contribution is None:
            client = clients.get(row.client_id)
            contribution = PoolContribution(
                client_id=row.client_id,
                client_name=client.full_name if client else "",
                county=county_names.get(client.county_id) if client and client.county_id else None,
            )
            by_client[row.client_id] = contribution
        contribution.housing_support = money.add(contribution.housing_support, row.totals.housing_support)
        contribution.rent_paid = money.add(contribution.rent_paid, row.totals.rent_paid)
        contribution.expenses = money.add(contribution.expenses, row.totals.total_expenses)
        contribution.pool_amount = money.add(contribution.pool_amount, amount)

    contributions = sorted(by_client.values(), key=lambda item: client_order.get(item.client_id, len(client_order)))
    contributions.sort(key=lambda item: item.pool_amount, reverse=True)
    return PoolFundSummary(
        total_pool_fund=money.total(item.pool_amount for item in contributions),
        total_contributors=len(contributions),
        positive_contributors=sum(1 for item in contributions if not money.is_negative(item.pool_amount)),
        negative_contributors=sum(1 for item in contributions if money.is_negative(item.pool_amount)),
        contributions=contributions,
    )


class PoolFundService:
    """Pool-fund snapshots and scoped summaries."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = LedgerRepository(db)
        self.aggregator = Aggregator(db)

    def month_result(self, client_month_id: UUID) -> dict[str, object]:
        totals = self.aggregator.aggregate_month(client_month_id)
        amount = pool_amount(totals)
        return {
            "clientMonthId": str(client_month_id),
            **totals.as_dict(),
            "included": amount is not None,
            "poolAmount": money.to_wire(amount) if amount is not None else None,
            "remainingBalance": money.to_wire(remaining_balance(totals)),
        }

    def refresh_snapshot(self, client_month: ClientMonth) -> PoolFund:
        """Upsert the cached pool-fund row for ``client_month``. Flushes only."""

        totals = self.aggregator.aggregate_month(client_month.id)
        snapshot = self.repo.get_pool_fund(client_month.id)
        if snapshot is None:
            snapshot = PoolFund(client_month_id=client_month.id)
            self.repo.add(snapshot)
        snapshot.hs_amount = totals.housing_support
        snapshot.rent_amount = totals.rent_paid
        snapshot.expense_amount = totals.total_expenses
        snapshot.pool_amount = pool_amount(totals)
        snapshot.calculated_at = datetime.utcnow()
        self.db.flush()
        return snapshot

    def summary(
        self,
        *,
        year: int | None = None,
        month: int | None = None,
        county_id: UUID | None = None,
    ) -> PoolFundSummary:
        """Summary over a month, a year, or all time when ``year`` is omitted."""

        if year is None and month is not None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="year is required when month is given.",
            )
        clients = {
            row.id: row
            for row in sorted(self.repo.list_clients(county_id=county_id), key=lambda item: item.created_at)
        }
        month_rows = self.aggregator.monthly_totals(client_ids=clients.keys(), year=year, month=month)
        summary = summarize_contributions(month_rows, clients, self.repo.county_names())
        logger.debug(
            "pool fund summary year=%s month=%s county=%s contributors=%s",
            year,
            month,
            county_id,
            summary.total_contributors,
        )
        return summary
