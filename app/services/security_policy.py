"""Account-lockout policy stored as a single database row, read fresh on every login."""

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.models.security_setting import (
    DEFAULT_ACCOUNT_LOCKING_ENABLED,
    DEFAULT_LOCK_TIME_MINUTES,
    DEFAULT_MAX_LOGIN_ATTEMPTS,
    SecuritySetting,
)

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1
UPDATABLE_FIELDS = ("max_login_attempts", "lock_time_minutes", "account_locking_enabled")


def get_security_settings(db: Session) -> SecuritySetting:
    """Return the policy row, creating it with defaults on first use."""
    row = db.get(SecuritySetting, SETTINGS_ROW_ID)
    if row is not None:
        return row
    row = SecuritySetting(
        id=SETTINGS_ROW_ID,
        max_login_attempts=DEFAULT_MAX_LOGIN_ATTEMPTS,
        lock_time_minutes=DEFAULT_LOCK_TIME_MINUTES,
        account_locking_enabled=DEFAULT_ACCOUNT_LOCKING_ENABLED,
    )
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        # Another request created it first
        db.rollback()
        return db.get(SecuritySetting, SETTINGS_ROW_ID, populate_existing=True)
    logger.info("Security settings initialised with defaults")
    return row


def upsert_security_settings(db: Session, changes: dict[str, Any]) -> SecuritySetting:
    """Apply a partial update. An empty update is rejected."""
    changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and v is not None}
    if not changes:
        raise ValidationError("At least one setting must be provided.")
    for key in ("max_login_attempts", "lock_time_minutes"):
        if key in changes and int(changes[key]) < 1:
            raise ValidationError(f"{key} must be at least 1.")

    row = get_security_settings(db)
    for key, value in changes.items():
        setattr(row, key, value)
    db.commit()
    db.refresh(row)
    logger.info("Security settings updated", extra={"fields": sorted(changes)})
    return row
