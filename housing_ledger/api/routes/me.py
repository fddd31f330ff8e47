"""Current user endpoint."""

from fastapi import APIRouter, Depends

from housing_ledger.core.auth import RequestUserContext, get_current_user_context
from housing_ledger.core.config import get_settings

router = APIRouter(prefix="/me", tags=["me"])


@router.get("")
def get_me(context: RequestUserContext = Depends(get_current_user_context)) -> dict[str, object]:
    """Profile of the acting user plus what the UI may offer them."""

    return {
        "id": str(context.user_id),
        "email": context.email,
        "display_name": context.display_name,
        "role": context.role.value,
        "is_super_admin": context.is_super_admin,
        "permissions": {
            "edit_locked_months": context.is_super_admin,
            "lock_months": context.is_super_admin,
            "override_client_status": context.is_super_admin,
            "view_audit_log": context.is_super_admin,
            "manage_users": context.is_super_admin,
        },
        "edit_window_days": get_settings().edit_window_days,
    }
