"""TOTP multi-factor authentication: secrets, QR provisioning, verification and the MFA flows."""

from __future__ import annotations

import base64
import io
import logging

import pyotp
import qrcode
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import AuthorizationError, InternalError, ValidationError
from app.models.credential import Credential
from app.schemas.auth import SessionTokens
from app.schemas.mfa import MfaSetupData
from app.services.hrm_client import HrmNotifier
from app.services.lockout import clear_failed_attempts, ensure_not_locked, record_failed_attempt
from app.services.security_policy import get_security_settings
from app.services.sessions import issue_session

logger = logging.getLogger(__name__)


def generate_secret(identity_label: str) -> tuple[str, str]:
    """Fresh random base32 secret and its otpauth:// provisioning URI."""
    secret = pyotp.random_base32()
    uri = pyotp.TOTP(secret).provisioning_uri(name=identity_label, issuer_name=settings.MFA_ISSUER_NAME)
    return secret, uri


def generate_provisioning_qr(uri: str) -> str:
    """Render the provisioning URI as a PNG data URI."""
    try:
        image = qrcode.make(uri)
        buf = io.BytesIO()
        image.save(buf)
    except Exception as exc:
        logger.exception("QR code rendering failed")
        raise InternalError("Could not generate QR code.") from exc
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def verify_token(secret: str | None, candidate: str | None) -> bool:
    """True if candidate is the TOTP for secret within +/- MFA_VALID_WINDOW time-steps."""
    if not secret or not candidate:
        return False
    try:
        return pyotp.TOTP(secret).verify(candidate.strip(), valid_window=settings.MFA_VALID_WINDOW)
    except ValueError:
        # Malformed base32 secret
        logger.warning("Stored MFA secret is not valid base32")
        return False


def start_enrolment(db: Session, credential: Credential) -> MfaSetupData:
    """Store a new pending secret; the active one (if any) keeps working until it is confirmed."""
    secret, uri = generate_secret(credential.email)
    qr_code_url = generate_provisioning_qr(uri)
    credential.mfa_pending_secret = secret
    db.commit()
    return MfaSetupData(secret=secret, qr_code_url=qr_code_url)


def generate_mfa(db: Session, credential: Credential, *, fully_authenticated: bool) -> MfaSetupData:
    """
    Begin (re-)enrolment. A login that stopped at the MFA challenge may only
    enrol when no secret is confirmed yet; replacing a confirmed secret needs
    a full session.
    """
    if credential.mfa_secret and credential.mfa_enabled and not fully_authenticated:
        raise AuthorizationError("MFA is already configured for this account.")
    return start_enrolment(db, credential)


def verify_and_enable_mfa(db: Session, credential: Credential, code: str) -> dict[str, bool]:
    """Confirm the pending secret with one valid code, then require MFA at login."""
    if not code:
        raise ValidationError("Token is required.")
    if not credential.mfa_pending_secret:
        raise ValidationError("MFA secret not found. Please generate a secret first.")
    if not verify_token(credential.mfa_pending_secret, code):
        raise ValidationError("Invalid token. Please check your authenticator app and try again.")
    credential.mfa_secret = credential.mfa_pending_secret
    credential.mfa_pending_secret = None
    credential.mfa_enabled = True
    db.commit()
    logger.info("MFA enabled", extra={"credential_id": credential.id})
    return {"verified": True}


def validate_mfa_login(
    db: Session,
    credential: Credential,
    code: str,
    notifier: HrmNotifier | None = None,
) -> SessionTokens:
    """
    Per-login MFA challenge against the confirmed secret; on success completes
    the login. Wrong codes count against the same lockout policy as wrong
    passwords.
    """
    if not code:
        raise ValidationError("Token is required.")
    if not credential.mfa_enabled or not credential.mfa_secret:
        raise ValidationError("MFA is not enabled for this user.")
    policy = get_security_settings(db)
    ensure_not_locked(db, credential, policy)
    if not verify_token(credential.mfa_secret, code):
        logger.info("MFA challenge failed", extra={"credential_id": credential.id})
        record_failed_attempt(db, credential, policy, notifier)
        raise ValidationError("Invalid MFA token.")
    clear_failed_attempts(db, credential)
    return issue_session(db, credential)
