"""ORM model for login credentials: password, lockout, MFA and session state."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, false
from sqlalchemy.orm import relationship

from app.models.base import AuditMixin, Base, SoftDeleteMixin, TimestampMixin


class Credential(Base, TimestampMixin, AuditMixin, SoftDeleteMixin):
    """
    One login identity. Created with a temporary password and
    password_reset_required=True; soft-deleted on deactivation, never removed.

    session_id is persisted only for roles with session_binding_required.
    session_issued_at orders concurrent logins so an older login never
    overwrites a newer binding.

    permissions_updated_at is stamped whenever the role's grants change; tokens
    issued before it are rejected.

    mfa_enabled means a TOTP challenge is required at login. mfa_secret is only
    set once a code from it has been verified; until then the candidate secret
    sits in mfa_pending_secret.

    otp_digest holds the SHA-256 of the pending forgot-password OTP, never the OTP.
    """

    __tablename__ = "credentials"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(320), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    user_id = Column(Integer, ForeignKey("user_profiles.id"), nullable=False, index=True)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=True, index=True)

    # Lockout
    failed_login_attempts = Column(Integer, nullable=False, default=0, server_default="0")
    account_locked = Column(Boolean, nullable=False, default=False, server_default=false())
    lock_until = Column(DateTime(timezone=True), nullable=True)

    # MFA
    mfa_enabled = Column(Boolean, nullable=False, default=False, server_default=false())
    mfa_secret = Column(String(64), nullable=True)
    # Secret awaiting its first successful verification
    mfa_pending_secret = Column(String(64), nullable=True)

    # Session binding
    session_id = Column(String(128), nullable=True)
    session_expires_at = Column(DateTime(timezone=True), nullable=True)
    session_issued_at = Column(DateTime(timezone=True), nullable=True)
    permissions_updated_at = Column(DateTime(timezone=True), nullable=True)

    # Password setup / reset
    password_reset_required = Column(Boolean, nullable=False, default=False, server_default=false())
    is_invite = Column(Boolean, nullable=False, default=False, server_default=false())
    otp_digest = Column(String(64), nullable=True)
    otp_expires_at = Column(DateTime(timezone=True), nullable=True)

    profile = relationship("UserProfile", lazy="joined")
    role = relationship("Role", lazy="joined")
