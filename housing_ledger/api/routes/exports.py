"""Export endpoint for the client report."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from housing_ledger.core.auth import RequestUserContext, get_current_user_context
from housing_ledger.db.dependencies import get_db_session
from housing_ledger.services.reporting_service import ReportingService

router = APIRouter(prefix="/exports", tags=["exports"])


def _service(db: Session) -> ReportingService:
    return ReportingService(db)


@router.get("/report")
def export_report(
    format: str = Query(default="csv"),
    year: int | None = Query(default=None, ge=1, le=9999),
    county_id: UUID | None = Query(default=None),
    service_type_id: UUID | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    exported = _service(db).export_report(
        format_name=format,
        year=year,
        county_id=county_id,
        service_type_id=service_type_id,
    )
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )
