"""User administration endpoints (super admin only)."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from housing_ledger.core.auth import AppRole, RequestUserContext, require_roles
from housing_ledger.core.errors import NotFoundError
from housing_ledger.db.dependencies import get_db_session
from housing_ledger.models.entities import User, UserRole
from housing_ledger.services.audit import AuditTrail

router = APIRouter(prefix="/users", tags=["users"])


class UserUpdatePayload(BaseModel):
    role: AppRole | None = None
    is_active: bool | None = None


def _serialize_user(user: User) -> dict[str, object]:
    return {
        "id": str(user.id),
        "email": user.email,
        "display_name": user.display_name,
        "role": user.role.value,
        "is_active": user.is_active,
        "last_login_at": user.last_login_at.isoformat() if user.last_login_at else None,
        "created_at": user.created_at.isoformat(),
    }


@router.get("")
def list_users(
    context: RequestUserContext = Depends(require_roles(AppRole.SUPER_ADMIN)),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    rows = db.scalars(select(User).order_by(User.email.asc())).all()
    return {"items": [_serialize_user(row) for row in rows]}


@router.patch("/{user_id}")
def update_user(
    user_id: UUID,
    payload: UserUpdatePayload,
    context: RequestUserContext = Depends(require_roles(AppRole.SUPER_ADMIN)),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    user = db.scalar(select(User).where(User.id == user_id))
    if user is None:
        raise NotFoundError("User not found.")

    before = _serialize_user(user)
    if payload.role is not None:
        user.role = UserRole(payload.role.value)
    if payload.is_active is not None:
        user.is_active = payload.is_active
    db.commit()
    db.refresh(user)

    after = _serialize_user(user)
    AuditTrail(db).record(
        context=context,
        action_type="update",
        entity="user",
        entity_id=user.id,
        old_data=before,
        new_data=after,
    )
    return after
