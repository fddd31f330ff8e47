"""Request identity and role guards.

Identity arrives as trusted headers (``X-USER-EMAIL``, ``X-USER-NAME``) set
by the gateway that validates sign-in; tests send them directly. Users are
created on first sight with the ``admin`` role; the role lives on the user row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from housing_ledger.core.config import get_settings
from housing_ledger.db.dependencies import get_db_session
from housing_ledger.models.entities import User, UserRole

logger = logging.getLogger(__name__)


class AppRole(str, Enum):
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


USER_ROLE_TO_APP_ROLE: dict[UserRole, AppRole] = {
    UserRole.ADMIN: AppRole.ADMIN,
    UserRole.SUPER_ADMIN: AppRole.SUPER_ADMIN,
}


@dataclass(frozen=True)
class RequestUserContext:
    """Acting user for one request."""

    user_id: UUID
    email: str
    display_name: str
    role: AppRole

    @property
    def role_names(self) -> tuple[AppRole, ...]:
        return (self.role,)

    @property
    def is_super_admin(self) -> bool:
        return self.role is AppRole.SUPER_ADMIN


def _normalize_email(value: str) -> str:
    return value.strip().lower()


def _resolve_identity(x_user_email: str | None, x_user_name: str | None) -> tuple[str, str]:
    """Return ``(email, display_name)`` from headers or the development principal."""

    if x_user_email and x_user_email.strip():
        email = _normalize_email(x_user_email)
        return email, (x_user_name or "").strip() or email

    settings = get_settings()
    if settings.auth_allow_dev_principal and not settings.is_production:
        return _normalize_email(settings.auth_dev_email), settings.auth_dev_display_name.strip()

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing identity header X-USER-EMAIL.",
    )


def _upsert_user(db: Session, *, email: str, display_name: str, role: UserRole | None = None) -> User:
    now = datetime.utcnow()
    user = db.scalar(select(User).where(User.email == email))

    if user is None:
        user = User(
            email=email,
            display_name=display_name,
            role=role or UserRole.ADMIN,
            is_active=True,
            last_login_at=now,
            created_at=now,
        )
        db.add(user)
        db.flush()
        logger.info("registered user %s with role %s", email, user.role.value)
        return user

    user.display_name = display_name
    if role is not None and user.role is not role:
        logger.info("user %s role changed %s -> %s", email, user.role.value, role.value)
        user.role = role
    user.last_login_at = now
    db.flush()
    return user


def ensure_user_principal(
    db: Session,
    *,
    email: str,
    display_name: str,
    role: UserRole | None = None,
) -> User:
    """Create or refresh a user and commit.

    Used by the seed command and tests. Passing ``role`` (re)assigns it.
    """

    normalized_email = _normalize_email(email)
    user = _upsert_user(
        db,
        email=normalized_email,
        display_name=display_name.strip() or normalized_email,
        role=role,
    )
    db.commit()
    db.refresh(user)
    return user


def get_current_user_context(
    x_user_email: str | None = Header(default=None, alias="X-USER-EMAIL"),
    x_user_name: str | None = Header(default=None, alias="X-USER-NAME"),
    db: Session = Depends(get_db_session),
) -> RequestUserContext:
    email, display_name = _resolve_identity(x_user_email, x_user_name)
    user = _upsert_user(db, email=email, display_name=display_name)
    if not user.is_active:
        db.rollback()
        logger.warning("refused request from disabled user %s", email)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is disabled.")
    db.commit()

    return RequestUserContext(
        user_id=user.id,
        email=user.email,
        display_name=user.display_name,
        role=USER_ROLE_TO_APP_ROLE[user.role],
    )


def has_role(context: RequestUserContext, allowed_roles: set[AppRole]) -> bool:
    return any(role in allowed_roles for role in context.role_names)


def require_roles(*roles: AppRole):
    """Dependency factory requiring at least one of ``roles``."""

    allowed = set(roles)

    def dependency(context: RequestUserContext = Depends(get_current_user_context)) -> RequestUserContext:
        if not has_role(context, allowed):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role permissions for this operation.",
            )
        return context

    return dependency


def ensure_super_admin(context: RequestUserContext) -> None:
    """Raise 403 unless the actor is a super admin."""

    if not context.is_super_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only super admins can perform this operation.",
        )
