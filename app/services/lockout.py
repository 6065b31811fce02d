"""
Failed-attempt counting and account locking, shared by the password step and
the MFA challenge.

The counter increment and the lock itself are one atomic UPDATE, so the
attempt that crosses the threshold is the one that gets the locked response.
"""

from __future__ import annotations

import logging
import math
from datetime import timedelta

from sqlalchemy import case, true, update
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.core.errors import AccountLockedError
from app.models.credential import Credential
from app.models.security_setting import SecuritySetting
from app.services.hrm_client import HrmNotifier, HrmServiceError

logger = logging.getLogger(__name__)


def locked_message(minutes: int) -> str:
    return f"Account locked due to multiple failed login attempts. Please try again in {minutes} minute(s)."


def ensure_not_locked(db: Session, credential: Credential, policy: SecuritySetting) -> None:
    """403 while a lock is running; a lock whose lock_until has passed is released with a fresh counter."""
    lock_until = as_utc(credential.lock_until)
    now = utcnow()
    if policy.account_locking_enabled and credential.account_locked and lock_until and lock_until > now:
        remaining = math.ceil((lock_until - now).total_seconds() / 60)
        raise AccountLockedError(locked_message(remaining))
    if credential.account_locked and (lock_until is None or lock_until <= now):
        credential.account_locked = False
        credential.lock_until = None
        credential.failed_login_attempts = 0
        db.commit()
        logger.info("Expired account lock released", extra={"credential_id": credential.id})


def record_failed_attempt(
    db: Session,
    credential: Credential,
    policy: SecuritySetting,
    notifier: HrmNotifier | None,
) -> None:
    """
    Count one failed attempt. Raises AccountLockedError when this attempt
    reaches the policy threshold; no-op while locking is disabled.
    """
    if not policy.account_locking_enabled:
        return
    lock_until = utcnow() + timedelta(minutes=policy.lock_time_minutes)
    new_count = Credential.failed_login_attempts + 1
    crosses = new_count >= policy.max_login_attempts
    row = db.execute(
        update(Credential)
        .where(Credential.id == credential.id)
        .values(
            failed_login_attempts=new_count,
            account_locked=case((crosses, true()), else_=Credential.account_locked),
            lock_until=case((crosses, lock_until), else_=Credential.lock_until),
        )
        .returning(Credential.failed_login_attempts)
        .execution_options(synchronize_session=False)
    ).one()
    db.commit()
    attempts = row[0]
    if attempts < policy.max_login_attempts:
        logger.info("Failed attempt", extra={"credential_id": credential.id, "attempts": attempts})
        return

    logger.warning("Account locked", extra={"credential_id": credential.id, "attempts": attempts})
    if notifier is not None:
        try:
            notifier.update_employee_status(credential.user_id, "Inactive")
        except HrmServiceError as exc:
            logger.error(
                "HRM employee status update failed; account stays locked",
                extra={"credential_id": credential.id, "error": exc.message},
            )
    raise AccountLockedError(locked_message(policy.lock_time_minutes))


def clear_failed_attempts(db: Session, credential: Credential) -> None:
    credential.failed_login_attempts = 0
    credential.account_locked = False
    credential.lock_until = None
    db.commit()
