"""Reference table endpoints: counties, service types and lookup lists."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, StringConstraints
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from housing_ledger.core.auth import RequestUserContext, get_current_user_context
from housing_ledger.core.errors import ConstraintViolationError, NotFoundError
from housing_ledger.db.dependencies import get_db_session
from housing_ledger.models.entities import County, ExpenseCategory, PaymentMethod, ServiceStatus, ServiceType
from housing_ledger.services.audit import AuditTrail

router = APIRouter(tags=["reference"])

# path -> (model, entity name, carries is_active)
REFERENCE_TABLES: dict[str, tuple[type, str, bool]] = {
    "counties": (County, "county", True),
    "service-types": (ServiceType, "service_type", True),
    "service-statuses": (ServiceStatus, "service_status", False),
    "expense-categories": (ExpenseCategory, "expense_category", False),
    "payment-methods": (PaymentMethod, "payment_method", False),
}


ReferenceName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


class ReferenceCreate(BaseModel):
    name: ReferenceName
    is_active: bool = True


class ReferenceUpdate(BaseModel):
    name: ReferenceName | None = None
    is_active: bool | None = None


def _serialize(row: object, has_active: bool) -> dict[str, object]:
    payload: dict[str, object] = {"id": str(row.id), "name": row.name}
    if has_active:
        payload["is_active"] = row.is_active
    return payload


def _commit(db: Session, entity: str) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConstraintViolationError(f"A {entity.replace('_', ' ')} with this name already exists.") from exc


def _register(path: str, model: type, entity: str, has_active: bool) -> None:
    @router.get(f"/{path}", name=f"list_{entity}")
    def list_rows(db: Session = Depends(get_db_session)) -> dict[str, object]:
        rows = db.scalars(select(model).order_by(model.name.asc())).all()
        return {"items": [_serialize(row, has_active) for row in rows]}

    @router.post(f"/{path}", status_code=status.HTTP_201_CREATED, name=f"create_{entity}")
    def create_row(
        payload: ReferenceCreate,
        context: RequestUserContext = Depends(get_current_user_context),
        db: Session = Depends(get_db_session),
    ) -> dict[str, object]:
        row = model(name=payload.name)
        if has_active:
            row.is_active = payload.is_active
        db.add(row)
        _commit(db, entity)
        db.refresh(row)
        snapshot = _serialize(row, has_active)
        AuditTrail(db).record(context=context, action_type="create", entity=entity, entity_id=row.id, new_data=snapshot)
        return snapshot

    @router.patch(f"/{path}/{{row_id}}", name=f"update_{entity}")
    def update_row(
        row_id: UUID,
        payload: ReferenceUpdate,
        context: RequestUserContext = Depends(get_current_user_context),
        db: Session = Depends(get_db_session),
    ) -> dict[str, object]:
        row = db.scalar(select(model).where(model.id == row_id))
        if row is None:
            raise NotFoundError(f"{entity.replace('_', ' ').capitalize()} not found.")
        before = _serialize(row, has_active)
        if payload.name is not None:
            row.name = payload.name
        if has_active and payload.is_active is not None:
            row.is_active = payload.is_active
        _commit(db, entity)
        db.refresh(row)
        snapshot = _serialize(row, has_active)
        AuditTrail(db).record(
            context=context,
            action_type="update",
            entity=entity,
            entity_id=row.id,
            old_data=before,
            new_data=snapshot,
        )
        return snapshot


for _path, (_model, _entity, _has_active) in REFERENCE_TABLES.items():
    _register(_path, _model, _entity, _has_active)
