"""Account-lockout policy endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from app.api.deps import DbSession, require_menu_permission
from app.schemas.common import ApiResponse, ok
from app.schemas.security import SecuritySettingsOut, SecuritySettingsUpdate
from app.services.security_policy import get_security_settings, upsert_security_settings
from app.services.sessions import AuthContext

router = APIRouter()

SettingsAdmin = Annotated[AuthContext, Depends(require_menu_permission("security-settings"))]


@router.get("", response_model=ApiResponse)
def read_settings(db: DbSession, _admin: SettingsAdmin) -> ApiResponse:
    row = get_security_settings(db)
    return ok("Security settings retrieved successfully.", SecuritySettingsOut.model_validate(row))


@router.put("", response_model=ApiResponse)
def update_settings(body: SecuritySettingsUpdate, db: DbSession, _admin: SettingsAdmin) -> ApiResponse:
    """Partial update; send at least one of maxLoginAttempts, lockTimeMinutes, accountLockingEnabled."""
    row = upsert_security_settings(db, body.model_dump(exclude_unset=True))
    return ok("Security settings updated successfully.", SecuritySettingsOut.model_validate(row))
