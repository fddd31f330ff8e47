"""Application service for dashboards, reports, yearly grids and exports.

All figures are recomputed from raw financial rows through the aggregator and
the pool-fund rules; the cached ``pool_funds`` table is never read here.
"""

from __future__ import annotations

import csv
import io
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from io import BytesIO
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from housing_ledger.core import money
from housing_ledger.core.errors import NotFoundError
from housing_ledger.repositories.ledger_repository import LedgerRepository
from housing_ledger.services.aggregation import Aggregator, ClientMonthTotals, MonthlyTotals
from housing_ledger.services.periods import Period, PeriodService
from housing_ledger.services.pool_fund import pool_amount, remaining_balance, summarize_contributions

DASHBOARD_FILTERS = {"all", "year", "month"}

REPORT_COLUMNS = [
    "clientId",
    "clientName",
    "county",
    "serviceType",
    "totalHousingSupport",
    "totalRentPaid",
    "totalExpenses",
    "totalLth",
    "remainingBalance",
    "poolFund",
]


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes


def _pool_total(rows: list[ClientMonthTotals]) -> money.Money:
    amounts = (pool_amount(row.totals) for row in rows)
    return money.total(amount for amount in amounts if amount is not None)


def _balance_total(rows: list[ClientMonthTotals]) -> money.Money:
    return money.total(remaining_balance(row.totals) for row in rows)


def _combined(rows: list[ClientMonthTotals]) -> MonthlyTotals:
    combined = MonthlyTotals()
    for row in rows:
        combined = combined + row.totals
    return combined


class ReportingService:
    """Read-side projections built from the aggregator and pool-fund rules."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = LedgerRepository(db)
        self.aggregator = Aggregator(db)
        self.periods = PeriodService(db)

    # ---------- Dashboard ----------
    def dashboard_metrics(
        self,
        *,
        filter_name: str = "all",
        year: int | None = None,
        month: int | None = None,
    ) -> dict[str, object]:
        normalized = filter_name.strip().lower()
        if normalized not in DASHBOARD_FILTERS:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="filter must be one of: all, year, month.",
            )
        if normalized == "all":
            year, month = None, None
        elif normalized == "year":
            if year is None:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="year is required for the year filter.",
                )
            month = None
        else:
            if year is None or month is None:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="year and month are required for the month filter.",
                )
            Period(year, month)

        clients = self.repo.list_clients()
        rows = self.aggregator.monthly_totals(year=year, month=month)
        combined = _combined(rows)
        summary = summarize_contributions(rows, {client.id: client for client in clients})

        return {
            "filter": normalized,
            "year": year,
            "month": month,
            "totalClients": len(clients),
            "totalHousingSupport": money.to_wire(combined.housing_support),
            "totalRentPaid": money.to_wire(combined.rent_paid),
            "totalExpenses": money.to_wire(combined.total_expenses),
            "totalLth": money.to_wire(combined.lth_total),
            "totalPoolFund": money.to_wire(summary.total_pool_fund),
            "totalRemainingBalance": money.to_wire(_balance_total(rows)),
            "poolContributors": summary.total_contributors,
            "positiveContributors": summary.positive_contributors,
            "negativeContributors": summary.negative_contributors,
        }

    # ---------- Client yearly grid ----------
    def client_year_grid(self, *, client_id: UUID, year: int, today: date) -> dict[str, object]:
        client = self.repo.get_client(client_id)
        if client is None:
            raise NotFoundError("Client not found.")

        rows = self.aggregator.monthly_totals(client_ids=[client.id], year=year)
        by_month = {row.month: row for row in rows}
        client_months = {row.month: row for row in self.repo.list_client_months(client_ids=[client.id], year=year)}

        months: list[dict[str, object]] = []
        for month in range(1, 13):
            period = Period(year, month)
            row = by_month.get(month)
            totals = row.totals if row else MonthlyTotals()
            client_month = client_months.get(month)
            if client_month is not None:
                is_locked = self.periods.refresh_lock_state(client_month, today).is_locked
            else:
                is_locked = self.periods.is_past_edit_window(period, today)
            amount = pool_amount(totals)
            months.append(
                {
                    "month": month,
                    "label": period.label,
                    "clientMonthId": str(client_month.id) if client_month else None,
                    "isLocked": is_locked,
                    "housingSupport": money.to_wire(totals.housing_support),
                    "rentPaid": money.to_wire(totals.rent_paid),
                    "expenses": money.to_wire(totals.total_expenses),
                    "lth": money.to_wire(totals.lth_total),
                    "remainingBalance": money.to_wire(remaining_balance(totals)),
                    "poolAmount": money.to_wire(amount) if amount is not None else None,
                    "included": amount is not None,
                    "hasData": totals.has_data,
                }
            )
        self.db.commit()

        year_totals = self.aggregator.aggregate_range(client.id, year)
        return {
            "clientId": str(client.id),
            "clientName": client.full_name,
            "year": year,
            "months": months,
            "totals": {
                **year_totals.as_dict(),
                "remainingBalance": money.to_wire(_balance_total(rows)),
                "poolFund": money.to_wire(_pool_total(rows)),
            },
        }

    # ---------- Reports ----------
    def report_rows(
        self,
        *,
        year: int | None = None,
        county_id: UUID | None = None,
        service_type_id: UUID | None = None,
    ) -> list[dict[str, object]]:
        clients = self.repo.list_clients(county_id=county_id, service_type_id=service_type_id, is_active=True)
        county_names = self.repo.county_names()
        service_type_names = self.repo.service_type_names()

        per_client: dict[UUID, list[ClientMonthTotals]] = defaultdict(list)
        for row in self.aggregator.monthly_totals(client_ids=[client.id for client in clients], year=year):
            per_client[row.client_id].append(row)

        report: list[dict[str, object]] = []
        for client in clients:
            rows = per_client.get(client.id, [])
            combined = _combined(rows)
            report.append(
                {
                    "clientId": str(client.id),
                    "clientName": client.full_name,
                    "county": county_names.get(client.county_id, "-") if client.county_id else "-",
                    "serviceType": (
                        service_type_names.get(client.service_type_id, "-") if client.service_type_id else "-"
                    ),
                    "totalHousingSupport": money.to_wire(combined.housing_support),
                    "totalRentPaid": money.to_wire(combined.rent_paid),
                    "totalExpenses": money.to_wire(combined.total_expenses),
                    "totalLth": money.to_wire(combined.lth_total),
                    "remainingBalance": money.to_wire(_balance_total(rows)),
                    "poolFund": money.to_wire(_pool_total(rows)),
                }
            )
        return report

    def export_report(
        self,
        *,
        format_name: str,
        year: int | None = None,
        county_id: UUID | None = None,
        service_type_id: UUID | None = None,
    ) -> ExportFilePayload:
        normalized_format = format_name.strip().lower()
        if normalized_format not in {"csv", "xlsx"}:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="format must be one of: csv, xlsx.",
            )

        rows = self.report_rows(year=year, county_id=county_id, service_type_id=service_type_id)
        base_filename = f"housing-report-{year}" if year is not None else "housing-report-all"

        if normalized_format == "csv":
            sio = io.StringIO()
            writer = csv.DictWriter(sio, fieldnames=REPORT_COLUMNS)
            writer.writeheader()
            writer.writerows(rows)
            return ExportFilePayload(
                media_type="text/csv; charset=utf-8",
                filename=f"{base_filename}.csv",
                content=sio.getvalue().encode("utf-8"),
            )

        # XLSX
        from openpyxl import Workbook

        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "report"
        sheet.append(REPORT_COLUMNS)
        for row in rows:
            sheet.append([row.get(column, "") for column in REPORT_COLUMNS])

        output = BytesIO()
        workbook.save(output)
        return ExportFilePayload(
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            filename=f"{base_filename}.xlsx",
            content=output.getvalue(),
        )
