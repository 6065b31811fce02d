"""
Login state machine, account provisioning and password setup / reset flows.

Login: credential lookup -> deactivation check -> lockout check -> password
verify -> one of passwordResetRequired | mfaRequired | mfaSetupRequired | success.
Failed attempts and locking live in app.services.lockout, shared with the MFA
challenge.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.core.config import settings
from app.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from app.core.security import (
    INITIAL_PASSWORD_MIN_LEN,
    RESET_PASSWORD_MIN_LEN,
    digest_secret,
    generate_numeric_otp,
    generate_session_id,
    generate_temporary_password,
    hash_password,
    password_meets_policy,
    secrets_match,
    verify_password,
)
from app.models.base import active
from app.models.credential import Credential
from app.models.role import Role
from app.models.user import UserProfile
from app.schemas.auth import (
    LoginResponse,
    ProvisionedAccount,
    PurposeTokenData,
    ResetTokenData,
    TemporaryLoginData,
    UserProjection,
)
from app.services.hrm_client import HrmNotifier
from app.services.lockout import clear_failed_attempts, ensure_not_locked, record_failed_attempt
from app.services.mfa import start_enrolment
from app.services.notifications import (
    EmailDeliveryError,
    EmailSender,
    otp_email,
    profile_completed_email,
    welcome_email,
)
from app.services.security_policy import get_security_settings
from app.services.sessions import build_user_projection, issue_session, load_profile
from app.services.tokens import (
    TokenPurpose,
    credential_id_of,
    decode_token,
    issue_purpose_token,
    password_fingerprint,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Incorrect username or password"
INACTIVE_ACCOUNT = "Your account is inactive. Please contact Super Admin for assistance."
INCONSISTENT_DATA = "User data is inconsistent. Please contact support."
INVALID_OTP = "Invalid OTP or OTP has expired."


def _policy_message(min_length: int) -> str:
    return (
        f"Password does not meet security standards. It must be at least {min_length} characters long "
        "and include at least one uppercase letter, one lowercase letter, one number, and one special character."
    )


def login(
    db: Session,
    username: str,
    password: str,
    notifier: HrmNotifier | None = None,
) -> LoginResponse:
    credential = db.query(Credential).filter(Credential.username == username).first()
    if credential is None:
        raise AuthenticationError(INVALID_CREDENTIALS)

    # Re-read on every attempt; the policy can change between attempts
    policy = get_security_settings(db)

    if credential.is_deleted:
        raise AuthorizationError(INACTIVE_ACCOUNT)

    ensure_not_locked(db, credential, policy)

    if not verify_password(password, credential.password_hash):
        record_failed_attempt(db, credential, policy, notifier)
        raise AuthenticationError(INVALID_CREDENTIALS)

    clear_failed_attempts(db, credential)

    if load_profile(db, credential.user_id) is None:
        raise InternalError(INCONSISTENT_DATA)

    session_id = generate_session_id()
    if credential.password_reset_required:
        return LoginResponse(
            status="passwordResetRequired",
            message="Password reset required.",
            data=PurposeTokenData(
                password_reset_required=True,
                token=issue_purpose_token(credential, TokenPurpose.PASSWORD_RESET, session_id),
            ),
        )

    if credential.mfa_enabled:
        token = issue_purpose_token(credential, TokenPurpose.MFA_VALIDATION, session_id)
        if credential.mfa_secret:
            return LoginResponse(
                status="mfaRequired",
                message="MFA verification required.",
                data=PurposeTokenData(mfa_required=True, token=token),
            )
        setup = start_enrolment(db, credential)
        return LoginResponse(
            status="mfaSetupRequired",
            message="MFA is enabled but not configured. Please scan the QR code to complete setup.",
            data=PurposeTokenData(
                mfa_setup_required=True,
                token=token,
                qr_code_url=setup.qr_code_url,
                secret=setup.secret,
            ),
        )

    logger.info("Login successful", extra={"credential_id": credential.id})
    return LoginResponse(status="success", message="Login successful", data=issue_session(db, credential))


def initial_password_reset(db: Session, credential: Credential, new_password: str) -> str:
    """First password for a provisioned account; activates the profile."""
    if not password_meets_policy(new_password, INITIAL_PASSWORD_MIN_LEN):
        raise ValidationError(_policy_message(INITIAL_PASSWORD_MIN_LEN))
    if not credential.password_reset_required:
        raise ValidationError("This account has already been set up.")
    profile = load_profile(db, credential.user_id)
    if profile is None:
        raise NotFoundError("User details not found.")

    credential.password_hash = hash_password(new_password)
    credential.password_reset_required = False
    profile.status = "active"
    db.commit()
    logger.info("Initial password set", extra={"credential_id": credential.id})
    return "Password has been reset successfully. Please log in with your new password."


def _find_by_email_for_reset(db: Session, email: str) -> tuple[Credential, UserProfile]:
    credential = db.query(Credential).filter(Credential.email == email).first()
    if credential is None:
        raise NotFoundError("User with this email does not exist.")
    if credential.is_deleted:
        raise AuthorizationError(INACTIVE_ACCOUNT)
    profile = load_profile(db, credential.user_id)
    if profile is None:
        raise InternalError(INCONSISTENT_DATA)
    return credential, profile


def send_password_reset_otp(db: Session, email: str, mailer: EmailSender, *, resent: bool = False) -> str:
    """
    E-mail a fresh numeric OTP. Only its digest is stored, and only after the
    e-mail was handed off, so a failed send leaves no usable OTP behind.
    """
    credential, profile = _find_by_email_for_reset(db, email)
    otp = generate_numeric_otp()
    try:
        mailer.send(otp_email(credential.email, profile.first_name, otp, resent=resent))
    except EmailDeliveryError as exc:
        logger.exception("OTP e-mail could not be sent", extra={"credential_id": credential.id})
        verb = "resend" if resent else "send"
        raise InternalError(f"Failed to {verb} OTP email. Please try again later.") from exc

    credential.otp_digest = digest_secret(otp)
    credential.otp_expires_at = utcnow() + timedelta(minutes=settings.OTP_EXPIRE_MINUTES)
    db.commit()
    return "OTP resent to your email successfully." if resent else "OTP sent to your email successfully."


def verify_password_reset_otp(db: Session, email: str, otp: str) -> ResetTokenData:
    """Single-use OTP check; a match within the expiry window yields the reset token."""
    credential = active(db, Credential).filter(Credential.email == email).first()
    if credential is None or not credential.otp_digest:
        raise ValidationError(INVALID_OTP)
    expires = as_utc(credential.otp_expires_at)
    candidate = digest_secret(otp.strip())
    if expires is None or expires <= utcnow() or not secrets_match(credential.otp_digest, candidate):
        raise ValidationError(INVALID_OTP)

    # Consume the OTP; a concurrent verify of the same OTP matches zero rows
    consumed = db.execute(
        update(Credential)
        .where(Credential.id == credential.id, Credential.otp_digest == candidate)
        .values(otp_digest=None, otp_expires_at=None)
        .execution_options(synchronize_session=False)
    ).rowcount
    if consumed == 0:
        db.rollback()
        raise ValidationError(INVALID_OTP)
    db.commit()
    db.refresh(credential)
    return ResetTokenData(token=issue_purpose_token(credential, TokenPurpose.OTP_VERIFIED))


def reset_password_after_otp(db: Session, credential: Credential, claims: dict[str, Any], new_password: str) -> str:
    if not password_meets_policy(new_password, RESET_PASSWORD_MIN_LEN):
        raise ValidationError(_policy_message(RESET_PASSWORD_MIN_LEN))
    if not secrets_match(str(claims.get("fp", "")), password_fingerprint(credential.password_hash)):
        raise AuthenticationError("This reset token has already been used. Please request a new OTP.")
    credential.password_hash = hash_password(new_password)
    db.commit()
    logger.info("Password reset via OTP", extra={"credential_id": credential.id})
    return "Password has been reset successfully. Please log in with your new password."


def temporary_login(db: Session, setup_token: str) -> TemporaryLoginData:
    """Exchange a setup-link token for the short-lived password-reset token."""
    try:
        claims = decode_token(setup_token, TokenPurpose.INITIAL_SETUP)
    except AuthenticationError as exc:
        raise AuthenticationError("Setup link is invalid or has expired. Please request a new one.") from exc

    credential = active(db, Credential).filter(Credential.id == credential_id_of(claims)).first()
    if credential is None:
        raise NotFoundError("User not found.")
    if not credential.password_reset_required:
        raise ValidationError("This setup link has already been used or is no longer valid.")
    if not secrets_match(str(claims.get("fp", "")), password_fingerprint(credential.password_hash)):
        # A newer setup link was issued since this one
        raise AuthenticationError("Invalid credentials provided by the setup link.")
    profile = load_profile(db, credential.user_id)
    if profile is None:
        raise InternalError(INCONSISTENT_DATA)

    return TemporaryLoginData(
        password_reset_required=True,
        token=issue_purpose_token(credential, TokenPurpose.PASSWORD_RESET),
        username=credential.username,
        first_name=profile.first_name,
    )


def _send_setup_link(db: Session, credential: Credential, first_name: str | None, mailer: EmailSender, *, resent: bool) -> None:
    token = issue_purpose_token(credential, TokenPurpose.INITIAL_SETUP)
    try:
        mailer.send(welcome_email(credential.email, first_name, credential.username, token, resent=resent))
    except EmailDeliveryError as exc:
        db.rollback()
        logger.exception("Setup e-mail could not be sent", extra={"credential_id": credential.id})
        raise InternalError("Failed to send the setup e-mail. Please try again later.") from exc


def resend_setup_link(db: Session, email: str, mailer: EmailSender) -> str:
    """Rotate the temporary password (voiding older links) and e-mail a new setup link."""
    credential = db.query(Credential).filter(Credential.email == email).first()
    if credential is None:
        raise NotFoundError("User with this email does not exist.")
    if credential.is_deleted:
        raise AuthorizationError(INACTIVE_ACCOUNT)
    if not credential.password_reset_required:
        raise ValidationError(
            'This account has already been set up. Please use the "Forgot Password" option '
            "if you have lost your password."
        )
    profile = load_profile(db, credential.user_id)
    if profile is None:
        raise InternalError(INCONSISTENT_DATA)

    credential.password_hash = hash_password(generate_temporary_password())
    db.flush()
    _send_setup_link(db, credential, profile.first_name, mailer, resent=True)
    db.commit()
    return "A new setup link has been sent to your email."


def _provision(
    db: Session,
    *,
    username: str,
    email: str,
    first_name: str | None,
    last_name: str | None,
    role_id: int,
    is_invite: bool,
    mailer: EmailSender,
    actor_id: int | None,
) -> ProvisionedAccount:
    role = active(db, Role).filter(Role.id == role_id).first()
    if role is None:
        raise ValidationError("Invalid role ID")
    email_taken = (
        db.query(Credential.id).filter(Credential.email == email).first()
        or db.query(UserProfile.id).filter(UserProfile.email == email).first()
    )
    if email_taken:
        raise ConflictError("Email already in use")
    if db.query(Credential.id).filter(Credential.username == username).first():
        raise ConflictError("Username already taken")

    profile = UserProfile(
        first_name=first_name,
        last_name=last_name,
        email=email,
        role_id=role.id,
        status="pending",
        created_by=actor_id,
    )
    credential = Credential(
        username=username,
        email=email,
        password_hash=hash_password(generate_temporary_password()),
        role_id=role.id,
        password_reset_required=True,
        is_invite=is_invite,
        mfa_enabled=settings.MFA_ENABLED_BY_DEFAULT,
        created_by=actor_id,
    )
    try:
        db.add(profile)
        db.flush()
        credential.user_id = profile.id
        db.add(credential)
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Email or username already in use") from exc

    _send_setup_link(db, credential, first_name, mailer, resent=False)
    db.commit()
    logger.info(
        "Account provisioned",
        extra={"credential_id": credential.id, "invite": is_invite, "actor_id": actor_id},
    )
    return ProvisionedAccount(user_id=profile.id, login_id=credential.id)


def register_by_admin(
    db: Session,
    *,
    username: str,
    first_name: str,
    last_name: str | None,
    email: str,
    role_id: int,
    mailer: EmailSender,
    actor_id: int | None = None,
) -> ProvisionedAccount:
    return _provision(
        db,
        username=username,
        email=email,
        first_name=first_name,
        last_name=last_name,
        role_id=role_id,
        is_invite=False,
        mailer=mailer,
        actor_id=actor_id,
    )


def invite(db: Session, *, email: str, role_id: int, mailer: EmailSender, actor_id: int | None = None) -> ProvisionedAccount:
    """The invitee's e-mail doubles as username."""
    return _provision(
        db,
        username=email,
        email=email,
        first_name=None,
        last_name=None,
        role_id=role_id,
        is_invite=True,
        mailer=mailer,
        actor_id=actor_id,
    )


def update_login_status(db: Session, user_id: int, status: str) -> UserProjection:
    """Inactive soft-deletes the credential and ends its session; Active restores it and clears lockout."""
    credential = db.query(Credential).filter(Credential.user_id == user_id).first()
    if credential is None:
        raise NotFoundError("User not found")
    if status == "Active":
        credential.is_deleted = False
        credential.account_locked = False
        credential.failed_login_attempts = 0
        credential.lock_until = None
    elif status == "Inactive":
        credential.is_deleted = True
        credential.session_id = None
        credential.session_expires_at = None
    else:
        raise ValidationError("Status must be Active or Inactive")
    db.commit()
    db.refresh(credential)
    logger.info("Login status changed", extra={"credential_id": credential.id, "status": status})
    return build_user_projection(credential)


def update_user_role(db: Session, user_id: int, role_id: int, actor_id: int | None) -> UserProjection:
    """
    Move an account to another role. Profile and credential change together;
    tokens issued before the move stop working and any bound session ends.
    """
    role = active(db, Role).filter(Role.id == role_id).first()
    if role is None:
        raise NotFoundError("The specified role was not found.")
    credential = active(db, Credential).filter(Credential.user_id == user_id).first()
    profile = load_profile(db, user_id)
    if credential is None or profile is None:
        raise NotFoundError("User not found")
    if credential.role_id == role.id:
        return build_user_projection(credential)

    previous = credential.role_id
    credential.role_id = role.id
    credential.updated_by = actor_id
    credential.permissions_updated_at = utcnow()
    credential.session_id = None
    credential.session_expires_at = None
    profile.role_id = role.id
    profile.updated_by = actor_id
    db.commit()
    db.refresh(credential)
    logger.info(
        "User role changed",
        extra={"credential_id": credential.id, "from_role": previous, "to_role": role.id, "actor_id": actor_id},
    )
    return build_user_projection(credential)


def complete_profile(db: Session, profile: UserProfile, mailer: EmailSender) -> tuple[str, bool]:
    """Mark the caller's profile complete; the confirmation e-mail goes out only the first time."""
    if profile.is_profile_completed:
        return "Profile was already marked as complete.", True
    profile.is_profile_completed = True
    db.commit()
    logger.info("Profile completed", extra={"user_id": profile.id})
    if profile.email:
        try:
            mailer.send(profile_completed_email(profile.email, profile.first_name))
        except EmailDeliveryError:
            logger.exception("Profile confirmation e-mail could not be sent", extra={"user_id": profile.id})
    return "Profile marked as complete.", True


def list_credentials(db: Session, search: str | None = None) -> list[UserProjection]:
    query = active(db, Credential)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Credential.username.ilike(pattern), Credential.email.ilike(pattern)))
    return [build_user_projection(c) for c in query.order_by(Credential.id).all()]
