"""Collect a client month's financial rows into normalized totals."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from housing_ledger.core import money
from housing_ledger.core.errors import NotFoundError
from housing_ledger.models.entities import ClientMonth, Expense, HousingSupport, LthPayment, RentPayment
from housing_ledger.repositories.ledger_repository import LedgerRepository


@dataclass(frozen=True, slots=True)
class MonthlyTotals:
    housing_support: Decimal = money.ZERO
    rent_paid: Decimal = money.ZERO
    total_expenses: Decimal = money.ZERO
    lth_total: Decimal = money.ZERO

    def __add__(self, other: MonthlyTotals) -> MonthlyTotals:
        if not isinstance(other, MonthlyTotals):
            return NotImplemented
        return MonthlyTotals(
            housing_support=money.add(self.housing_support, other.housing_support),
            rent_paid=money.add(self.rent_paid, other.rent_paid),
            total_expenses=money.add(self.total_expenses, other.total_expenses),
            lth_total=money.add(self.lth_total, other.lth_total),
        )

    @property
    def has_data(self) -> bool:
        # LTH does not count towards the grid's data marker.
        return not (
            money.is_zero(self.housing_support)
            and money.is_zero(self.rent_paid)
            and money.is_zero(self.total_expenses)
        )

    def as_dict(self) -> dict[str, object]:
        return {
            "housingSupport": money.to_wire(self.housing_support),
            "rentPaid": money.to_wire(self.rent_paid),
            "totalExpenses": money.to_wire(self.total_expenses),
            "lthTotal": money.to_wire(self.lth_total),
        }


@dataclass(slots=True)
class ClientMonthTotals:
    client_month_id: UUID
    client_id: UUID
    year: int
    month: int
    is_locked: bool
    totals: MonthlyTotals = field(default_factory=MonthlyTotals)


def totals_from_rows(
    housing_support: HousingSupport | None,
    rent_payment: RentPayment | None,
    expenses: Iterable[Expense],
    lth_payments: Iterable[LthPayment],
) -> MonthlyTotals:
    return MonthlyTotals(
        housing_support=money.coerce(housing_support.amount if housing_support else None),
        rent_paid=money.coerce(rent_payment.paid_amount if rent_payment else None),
        total_expenses=money.total(row.amount for row in expenses),
        lth_total=money.total(row.amount for row in lth_payments),
    )


class Aggregator:
    """Read-side totals for one month, a client's range, or many clients."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = LedgerRepository(db)

    def aggregate_month(self, client_month_id: UUID) -> MonthlyTotals:
        if self.repo.get_client_month(client_month_id) is None:
            raise NotFoundError("Client month not found.")
        return totals_from_rows(
            self.repo.get_housing_support(client_month_id),
            self.repo.get_rent_payment(client_month_id),
            self.repo.list_expenses(client_month_id),
            self.repo.list_lth_payments(client_month_id),
        )

    def aggregate_range(self, client_id: UUID, year: int | None = None, month: int | None = None) -> MonthlyTotals:
        combined = MonthlyTotals()
        for row in self.monthly_totals(client_ids=[client_id], year=year, month=month):
            combined = combined + row.totals
        return combined

    def monthly_totals(
        self,
        *,
        client_ids: Iterable[UUID] | None = None,
        year: int | None = None,
        month: int | None = None,
    ) -> list[ClientMonthTotals]:
        """Totals for every ClientMonth in scope, one query per financial table."""

        client_months: list[ClientMonth] = self.repo.list_client_months(client_ids=client_ids, year=year, month=month)
        if not client_months:
            return []

        month_ids = [row.id for row in client_months]
        housing = {row.client_month_id: row for row in self.repo.housing_supports_for(month_ids)}
        rent = {row.client_month_id: row for row in self.repo.rent_payments_for(month_ids)}
        expenses: dict[UUID, list[Expense]] = defaultdict(list)
        for row in self.repo.expenses_for(month_ids):
            expenses[row.client_month_id].append(row)
        lth: dict[UUID, list[LthPayment]] = defaultdict(list)
        for row in self.repo.lth_payments_for(month_ids):
            lth[row.client_month_id].append(row)

        return [
            ClientMonthTotals(
                client_month_id=row.id,
                client_id=row.client_id,
                year=row.year,
                month=row.month,
                is_locked=row.is_locked,
                totals=totals_from_rows(
                    housing.get(row.id),
                    rent.get(row.id),
                    expenses.get(row.id, []),
                    lth.get(row.id, []),
                ),
            )
            for row in client_months
        ]
