"""
Session issuance, refresh, logout and per-request token validation.

Roles with session_binding_required keep one live session per credential: the
session id in a token must equal the one persisted on the credential. Every
other role gets a session id in its tokens that is never checked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.core.config import settings
from app.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InternalError,
)
from app.core.security import generate_session_id, secrets_match
from app.models.base import active
from app.models.credential import Credential
from app.models.role import Role
from app.models.user import UserProfile
from app.schemas.auth import SessionTokens, TokenPair, UserProjection
from app.services.tokens import (
    TokenPurpose,
    credential_id_of,
    decode_token,
    issue_access_token,
    issue_refresh_token,
    issued_at,
)

logger = logging.getLogger(__name__)

PERMISSIONS_CHANGED_MESSAGE = "Your role permissions have changed. Please log in again to get an updated session."


@dataclass
class AuthContext:
    """Identity resolved from a valid access token, attached to the request."""

    credential: Credential
    profile: UserProfile
    company_id: str
    session_id: str | None
    claims: dict[str, Any]

    @property
    def role_id(self) -> int | None:
        return self.credential.role_id


def is_session_bound(role: Role | None) -> bool:
    return role is not None and bool(role.session_binding_required)


def build_user_projection(credential: Credential) -> UserProjection:
    """Sanitized user view; password, OTP and MFA fields never leave the service."""
    profile = credential.profile
    role = credential.role
    return UserProjection(
        id=credential.id,
        user_id=credential.user_id,
        email=credential.email,
        name=profile.display_name if profile else None,
        username=credential.username,
        role_id=credential.role_id,
        rolename=role.name if role else None,
        is_profile_completed=bool(profile and profile.is_profile_completed),
    )


def load_credential(db: Session, credential_id: int) -> Credential | None:
    return active(db, Credential).filter(Credential.id == credential_id).first()


def load_profile(db: Session, user_id: int | None) -> UserProfile | None:
    if user_id is None:
        return None
    return active(db, UserProfile).filter(UserProfile.id == user_id).first()


def _bind_session(db: Session, credential: Credential, session_id: str, issued: datetime) -> None:
    """
    Persist the session binding unless a newer login already bound one.
    Raises ConflictError when this login lost the race.
    """
    result = db.execute(
        update(Credential)
        .where(Credential.id == credential.id)
        .where(
            or_(
                Credential.session_issued_at.is_(None),
                Credential.session_issued_at < issued,
            )
        )
        .values(
            session_id=session_id,
            session_expires_at=issued + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
            session_issued_at=issued,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        logger.warning("Session binding lost to a newer login", extra={"credential_id": credential.id})
        raise ConflictError("A newer login for this account is in progress. Please log in again.")
    db.commit()
    db.refresh(credential)
    logger.info("Session bound", extra={"credential_id": credential.id})


def issue_session(db: Session, credential: Credential) -> SessionTokens:
    """
    Final step of password or MFA login: fresh session id, access and refresh
    tokens, and the session binding for roles that require one.
    """
    if credential.profile is None:
        raise InternalError("User data is inconsistent. Please contact support.")
    session_id = generate_session_id()
    if is_session_bound(credential.role):
        _bind_session(db, credential, session_id, utcnow())
    user = build_user_projection(credential)
    return SessionTokens(
        is_profile_completed=user.is_profile_completed,
        user=user,
        token=issue_access_token(credential, session_id),
        refresh_token=issue_refresh_token(credential, session_id),
    )


def _check_permissions_fresh(credential: Credential, claims: dict[str, Any]) -> None:
    changed = as_utc(credential.permissions_updated_at)
    if changed is not None and changed.timestamp() > issued_at(claims):
        logger.info("Token predates a permission change", extra={"credential_id": credential.id})
        raise AuthenticationError(PERMISSIONS_CHANGED_MESSAGE)


def refresh_session(db: Session, refresh_token: str) -> TokenPair:
    """
    Mint a new access/refresh pair with the same session id (no rotation)
    and extend the session expiry.
    """
    claims = decode_token(refresh_token, TokenPurpose.REFRESH)
    credential = load_credential(db, credential_id_of(claims))
    if credential is None or load_profile(db, claims.get("uid")) is None:
        raise AuthenticationError("Invalid or expired refresh token.")
    session_id = claims.get("sid") or ""
    bound = is_session_bound(credential.role)
    if bound and not (credential.session_id and secrets_match(credential.session_id, session_id)):
        logger.warning("Refresh with a stale session id", extra={"credential_id": credential.id})
        raise AuthorizationError("Invalid session. Please log in again.")
    _check_permissions_fresh(credential, claims)

    stmt = (
        update(Credential)
        .where(Credential.id == credential.id)
        .values(session_expires_at=utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))
        .execution_options(synchronize_session=False)
    )
    if bound:
        # The session may have been rotated by a login since the check above
        stmt = stmt.where(Credential.session_id == session_id)
    if db.execute(stmt).rowcount == 0:
        db.rollback()
        raise AuthorizationError("Invalid session. Please log in again.")
    db.commit()
    db.refresh(credential)
    return TokenPair(
        access_token=issue_access_token(credential, session_id),
        refresh_token=issue_refresh_token(credential, session_id),
    )


def end_session(db: Session, credential: Credential) -> None:
    """Logout: clear the persisted session binding."""
    credential.session_id = None
    credential.session_expires_at = None
    db.commit()
    logger.info("Session ended", extra={"credential_id": credential.id})


def invalidate_role_sessions(db: Session, role_id: int, when: datetime) -> int:
    """
    Stamp permissions_updated_at on every member of the role and drop their
    session binding. Does not commit; runs inside the caller's transaction.
    """
    result = db.execute(
        update(Credential)
        .where(Credential.role_id == role_id)
        .values(permissions_updated_at=when, session_id=None, session_expires_at=None)
        .execution_options(synchronize_session=False)
    )
    logger.info(
        "Role permissions changed; member sessions invalidated",
        extra={"role_id": role_id, "credentials": result.rowcount},
    )
    return result.rowcount


def authenticate_access_token(db: Session, token: str) -> AuthContext:
    """
    Validate an access token for a protected request.

    401 for expired or invalid tokens, unknown identities and tokens issued
    before the role's last permission change; 403 when a session-bound role
    presents a session id that is no longer the persisted one.
    """
    claims = decode_token(token, TokenPurpose.ACCESS)
    credential = load_credential(db, credential_id_of(claims))
    profile = load_profile(db, claims.get("uid"))
    if credential is None or profile is None:
        raise AuthenticationError("User not found")

    session_id = claims.get("sid")
    if is_session_bound(credential.role) and session_id:
        if not (credential.session_id and secrets_match(credential.session_id, session_id)):
            logger.info("Rejected token for a replaced session", extra={"credential_id": credential.id})
            raise AuthorizationError("Session invalidated. Please log in again.")

    _check_permissions_fresh(credential, claims)
    return AuthContext(
        credential=credential,
        profile=profile,
        company_id=str(claims.get("company_id") or settings.COMPANY_ID),
        session_id=session_id,
        claims=claims,
    )
