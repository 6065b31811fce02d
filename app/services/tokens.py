"""Signing and verification of purpose-scoped JWTs (access, refresh and single-step tokens)."""

from __future__ import annotations

import secrets
from datetime import timedelta
from enum import Enum
from typing import Any

import jwt

from app.core.clock import utcnow
from app.core.config import settings
from app.core.errors import AuthenticationError
from app.core.security import decode_jwt, digest_secret, encode_jwt
from app.models.credential import Credential

# Claims only an access token carries; a token that has them is never a refresh token.
ACCESS_ONLY_CLAIMS = ("email", "rolename")


class TokenPurpose(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    PASSWORD_RESET = "password-reset"
    MFA_VALIDATION = "mfa-validation"
    INITIAL_SETUP = "initial-setup"
    OTP_VERIFIED = "forgot-password-otp-verified"


def _lifetime(purpose: TokenPurpose) -> timedelta:
    if purpose is TokenPurpose.ACCESS:
        return timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    if purpose is TokenPurpose.REFRESH:
        return timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    if purpose is TokenPurpose.INITIAL_SETUP:
        return timedelta(hours=settings.SETUP_TOKEN_EXPIRE_HOURS)
    if purpose is TokenPurpose.OTP_VERIFIED:
        return timedelta(minutes=settings.OTP_RESET_TOKEN_EXPIRE_MINUTES)
    return timedelta(minutes=settings.PURPOSE_TOKEN_EXPIRE_MINUTES)


def _sign(purpose: TokenPurpose, credential_id: int, claims: dict[str, Any]) -> str:
    now = utcnow()
    payload: dict[str, Any] = {
        **claims,
        "sub": str(credential_id),
        "purpose": purpose.value,
        # Sub-second iat so a grant edit in the same second still orders correctly
        "iat": now.timestamp(),
        "exp": now + _lifetime(purpose),
        "jti": secrets.token_hex(8),
    }
    return encode_jwt(payload)


def password_fingerprint(password_hash: str) -> str:
    """Changes whenever the password changes; binds one-shot tokens to the current password."""
    return digest_secret(password_hash)


def issue_access_token(credential: Credential, session_id: str) -> str:
    profile = credential.profile
    role = credential.role
    return _sign(
        TokenPurpose.ACCESS,
        credential.id,
        {
            "uid": credential.user_id,
            "email": credential.email,
            "name": profile.display_name if profile else None,
            "username": credential.username,
            "company_id": settings.COMPANY_ID,
            "role_id": credential.role_id,
            "rolename": role.name if role else None,
            "sid": session_id,
        },
    )


def issue_refresh_token(credential: Credential, session_id: str) -> str:
    return _sign(
        TokenPurpose.REFRESH,
        credential.id,
        {"uid": credential.user_id, "sid": session_id},
    )


def issue_purpose_token(
    credential: Credential,
    purpose: TokenPurpose,
    session_id: str | None = None,
) -> str:
    """
    Short-lived token that only unlocks the next step of a flow.

    Setup and OTP-verified tokens carry a password fingerprint so they stop
    working once the password they were issued against has changed.
    """
    if purpose in (TokenPurpose.ACCESS, TokenPurpose.REFRESH):
        raise ValueError("use issue_access_token / issue_refresh_token for session tokens")
    claims: dict[str, Any] = {"uid": credential.user_id}
    if session_id is not None:
        claims["sid"] = session_id
    if purpose in (TokenPurpose.INITIAL_SETUP, TokenPurpose.OTP_VERIFIED):
        claims["fp"] = password_fingerprint(credential.password_hash)
    return _sign(purpose, credential.id, claims)


def decode_token(token: str, *purposes: TokenPurpose) -> dict[str, Any]:
    """
    Verify signature, expiry and purpose. Raises AuthenticationError
    ("Token expired" / "Invalid token") for anything that does not check out.
    """
    try:
        claims = decode_jwt(token)
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Token expired") from exc
    except jwt.PyJWTError as exc:
        raise AuthenticationError("Invalid token") from exc

    allowed = {p.value for p in purposes}
    if claims.get("purpose") not in allowed:
        raise AuthenticationError("Invalid token")

    has_access_claims = all(k in claims for k in ACCESS_ONLY_CLAIMS)
    if claims["purpose"] == TokenPurpose.ACCESS.value and not has_access_claims:
        raise AuthenticationError("Invalid token")
    if claims["purpose"] != TokenPurpose.ACCESS.value and any(k in claims for k in ACCESS_ONLY_CLAIMS):
        raise AuthenticationError("Invalid token")
    return claims


def credential_id_of(claims: dict[str, Any]) -> int:
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthenticationError("Invalid token") from exc


def issued_at(claims: dict[str, Any]) -> float:
    return float(claims["iat"])
