"""Read-side endpoints: dashboard metrics, reports, yearly grid and pool fund."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from housing_ledger.core.auth import RequestUserContext, get_current_user_context
from housing_ledger.core.clock import get_today
from housing_ledger.db.dependencies import get_db_session
from housing_ledger.services.pool_fund import PoolFundService
from housing_ledger.services.reporting_service import ReportingService

router = APIRouter(tags=["reports"])


def _service(db: Session) -> ReportingService:
    return ReportingService(db)


@router.get("/dashboard/metrics")
def get_dashboard_metrics(
    filter: str = Query(default="all"),
    year: int | None = Query(default=None, ge=1, le=9999),
    month: int | None = Query(default=None, ge=1, le=12),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _service(db).dashboard_metrics(filter_name=filter, year=year, month=month)


@router.get("/reports")
def get_report(
    year: int | None = Query(default=None, ge=1, le=9999),
    county_id: UUID | None = Query(default=None),
    service_type_id: UUID | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    rows = _service(db).report_rows(year=year, county_id=county_id, service_type_id=service_type_id)
    return {"year": year, "items": rows}


@router.get("/clients/{client_id}/years/{year}")
def get_client_year(
    client_id: UUID,
    year: int,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    today: date = Depends(get_today),
) -> dict[str, object]:
    return _service(db).client_year_grid(client_id=client_id, year=year, today=today)


@router.get("/pool-fund-summary")
def get_pool_fund_summary(
    year: int | None = Query(default=None, ge=1, le=9999),
    month: int | None = Query(default=None, ge=1, le=12),
    county_id: UUID | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    summary = PoolFundService(db).summary(year=year, month=month, county_id=county_id)
    return {"year": year, "month": month, **summary.as_dict()}
