"""Schemas for the account-lockout policy."""

from pydantic import Field

from app.schemas.common import CamelModel


class SecuritySettingsOut(CamelModel):
    max_login_attempts: int
    lock_time_minutes: int
    account_locking_enabled: bool


class SecuritySettingsUpdate(CamelModel):
    """Partial update; at least one field is required."""

    max_login_attempts: int | None = Field(default=None, ge=1, le=100)
    lock_time_minutes: int | None = Field(default=None, ge=1, le=10080)
    account_locking_enabled: bool | None = None
