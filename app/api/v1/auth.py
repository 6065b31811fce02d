"""Auth endpoints: login, refresh, logout, password setup/reset and account provisioning."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.api.deps import (
    CurrentAuth,
    DbSession,
    PurposeContext,
    get_email_sender,
    get_hrm_notifier,
    purpose_token,
    require_menu_permission,
)
from app.schemas.auth import (
    CurrentUser,
    EmailRequest,
    InviteRequest,
    LoginRequest,
    LoginResponse,
    LoginStatusRequest,
    NewPasswordRequest,
    ProfileCompletion,
    RefreshRequest,
    RegisterRequest,
    SetupTokenRequest,
    TokenPair,
    UserRoleRequest,
    VerifyOtpRequest,
)
from app.schemas.common import ApiResponse, ok
from app.services import auth as auth_service
from app.services.access import granted_menu_keys
from app.services.hrm_client import HrmNotifier
from app.services.notifications import EmailSender
from app.services.sessions import AuthContext, end_session, refresh_session
from app.services.tokens import TokenPurpose

logger = logging.getLogger(__name__)
router = APIRouter()

Mailer = Annotated[EmailSender, Depends(get_email_sender)]
UsersAdmin = Annotated[AuthContext, Depends(require_menu_permission("users"))]


@router.post("", response_model=LoginResponse, response_model_exclude_none=True)
def login(
    body: LoginRequest,
    db: DbSession,
    notifier: Annotated[HrmNotifier, Depends(get_hrm_notifier)],
) -> LoginResponse:
    """
    Authenticate with username and password.

    status tells the client what comes next: success (tokens issued),
    passwordResetRequired, mfaRequired or mfaSetupRequired (each with a
    short-lived token for that step). A locked account answers 403 with
    data.accountLocked = true.
    """
    return auth_service.login(db, body.username, body.password, notifier)


@router.post("/refresh-token", response_model=TokenPair)
def refresh_token(body: RefreshRequest, db: DbSession) -> TokenPair:
    """New access/refresh pair for the same session."""
    return refresh_session(db, body.refresh_token)


@router.put("/logout", response_model=ApiResponse)
def logout(ctx: CurrentAuth, db: DbSession) -> ApiResponse:
    end_session(db, ctx.credential)
    return ok("Logged out successfully.")


@router.get("/me", response_model=ApiResponse)
def me(ctx: CurrentAuth, db: DbSession) -> ApiResponse:
    credential = ctx.credential
    user = CurrentUser(
        id=credential.id,
        user_id=credential.user_id,
        username=credential.username,
        email=credential.email,
        role_id=credential.role_id,
        rolename=credential.role.name if credential.role else None,
        company_id=ctx.company_id,
        menu_keys=granted_menu_keys(db, credential.role_id),
    )
    return ok("Current user", user)


@router.post("/initial-reset", response_model=ApiResponse)
def initial_reset(
    body: NewPasswordRequest,
    db: DbSession,
    ctx: Annotated[PurposeContext, Depends(purpose_token(TokenPurpose.PASSWORD_RESET))],
) -> ApiResponse:
    """Set the first password using the token from login or token-login (12+ chars, mixed classes)."""
    return ok(auth_service.initial_password_reset(db, ctx.credential, body.new_password))


@router.post("/token-login", response_model=ApiResponse)
def token_login(body: SetupTokenRequest, db: DbSession) -> ApiResponse:
    """Exchange the e-mailed setup link token for a password-reset token."""
    return ok("Temporary login successful.", auth_service.temporary_login(db, body.token))


@router.post("/resend-setup-link", response_model=ApiResponse)
def resend_setup_link(body: EmailRequest, db: DbSession, mailer: Mailer) -> ApiResponse:
    return ok(auth_service.resend_setup_link(db, body.email, mailer))


@router.post("/forgot-password", response_model=ApiResponse)
def forgot_password(body: EmailRequest, db: DbSession, mailer: Mailer) -> ApiResponse:
    return ok(auth_service.send_password_reset_otp(db, body.email, mailer))


@router.post("/forgot-password/resend-otp", response_model=ApiResponse)
def resend_otp(body: EmailRequest, db: DbSession, mailer: Mailer) -> ApiResponse:
    return ok(auth_service.send_password_reset_otp(db, body.email, mailer, resent=True))


@router.post("/forgot-password/verify-otp", response_model=ApiResponse)
def verify_otp(body: VerifyOtpRequest, db: DbSession) -> ApiResponse:
    """Single-use OTP check; returns the token for /forgot-password/reset."""
    return ok("OTP verified successfully.", auth_service.verify_password_reset_otp(db, body.email, body.otp))


@router.post("/forgot-password/reset", response_model=ApiResponse)
def reset_password(
    body: NewPasswordRequest,
    db: DbSession,
    ctx: Annotated[PurposeContext, Depends(purpose_token(TokenPurpose.OTP_VERIFIED))],
) -> ApiResponse:
    return ok(auth_service.reset_password_after_otp(db, ctx.credential, ctx.claims, body.new_password))


@router.post("/register", response_model=ApiResponse, status_code=201)
def register(body: RegisterRequest, db: DbSession, mailer: Mailer, admin: UsersAdmin) -> ApiResponse:
    """Create an account; the user receives a setup link by e-mail."""
    account = auth_service.register_by_admin(
        db,
        username=body.username,
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        role_id=body.role_id,
        mailer=mailer,
        actor_id=admin.credential.id,
    )
    return ok("User registered successfully. A setup link has been sent.", account, status_code=201)


@router.post("/invite", response_model=ApiResponse, status_code=201)
def invite(body: InviteRequest, db: DbSession, mailer: Mailer, admin: UsersAdmin) -> ApiResponse:
    account = auth_service.invite(
        db, email=body.email, role_id=body.role_id, mailer=mailer, actor_id=admin.credential.id
    )
    return ok("Invitation sent successfully.", account, status_code=201)


@router.patch("/update-user-status", response_model=ApiResponse)
def update_user_status(body: LoginStatusRequest, db: DbSession, admin: UsersAdmin) -> ApiResponse:
    user = auth_service.update_login_status(db, body.user_id, body.status)
    logger.info("User status updated", extra={"actor_id": admin.credential.id, "user_id": body.user_id})
    return ok("User status updated successfully.", user)


@router.patch("/users/{user_id}/role", response_model=ApiResponse)
def update_user_role(user_id: int, body: UserRoleRequest, db: DbSession, admin: UsersAdmin) -> ApiResponse:
    """Reassign the user's role; their current tokens stop working."""
    user = auth_service.update_user_role(db, user_id, body.role_id, admin.credential.id)
    return ok("User role updated successfully.", user)


@router.patch("/complete-profile", response_model=ApiResponse)
def complete_profile(ctx: CurrentAuth, db: DbSession, mailer: Mailer) -> ApiResponse:
    message, completed = auth_service.complete_profile(db, ctx.profile, mailer)
    return ok(message, ProfileCompletion(is_profile_completed=completed))


@router.get("/users", response_model=ApiResponse)
def list_users(
    db: DbSession,
    _admin: UsersAdmin,
    search: Annotated[str | None, Query(max_length=255)] = None,
) -> ApiResponse:
    return ok("Users retrieved successfully.", auth_service.list_credentials(db, search))
