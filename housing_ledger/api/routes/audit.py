"""Audit log and activity feed endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from housing_ledger.core.auth import RequestUserContext, get_current_user_context
from housing_ledger.core.config import get_settings
from housing_ledger.db.dependencies import get_db_session
from housing_ledger.services.client_service import ClientService

router = APIRouter(tags=["audit"])


@router.get("/audit-logs")
def list_audit_logs(
    entity_id: str | None = Query(default=None, max_length=64),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ClientService(db)
    rows = service.list_audit_logs(
        context=context,
        entity_id=entity_id,
        limit=get_settings().audit_log_page_size,
    )
    return {"items": [service.serialize_audit_log(row) for row in rows]}


@router.get("/activities")
def list_activities(
    limit: int | None = Query(default=None, ge=1, le=200),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ClientService(db)
    rows = service.list_activities(limit=limit or get_settings().activity_feed_limit)
    return {"items": [service.serialize_activity(row) for row in rows]}
