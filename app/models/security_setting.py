"""ORM model for the singleton account-lockout policy."""

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, true

from app.models.base import Base, TimestampMixin

DEFAULT_MAX_LOGIN_ATTEMPTS = 3
DEFAULT_LOCK_TIME_MINUTES = 1
DEFAULT_ACCOUNT_LOCKING_ENABLED = True


class SecuritySetting(Base, TimestampMixin):
    """Single row (id=1) read on every login attempt."""

    __tablename__ = "security_settings"
    __table_args__ = (
        CheckConstraint("id = 1", name="ck_security_settings_singleton"),
        CheckConstraint("max_login_attempts >= 1", name="ck_security_settings_attempts"),
        CheckConstraint("lock_time_minutes >= 1", name="ck_security_settings_lock_time"),
    )

    id = Column(Integer, primary_key=True, default=1)
    max_login_attempts = Column(Integer, nullable=False, default=DEFAULT_MAX_LOGIN_ATTEMPTS)
    lock_time_minutes = Column(Integer, nullable=False, default=DEFAULT_LOCK_TIME_MINUTES)
    account_locking_enabled = Column(
        Boolean, nullable=False, default=DEFAULT_ACCOUNT_LOCKING_ENABLED, server_default=true()
    )
