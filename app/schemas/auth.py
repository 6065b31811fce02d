"""Request/response schemas for auth endpoints."""

from typing import Literal

from pydantic import ConfigDict, EmailStr, Field

from app.core.security import PASSWORD_MAX_LEN, USERNAME_MAX_LEN, USERNAME_MIN_LEN
from app.schemas.common import CamelModel

LoginStatus = Literal["success", "passwordResetRequired", "mfaRequired", "mfaSetupRequired"]


class LoginRequest(CamelModel):
    """Credentials for login."""

    username: str = Field(..., min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN, description="Username")
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN, description="Password")


class UserProjection(CamelModel):
    """Sanitized view of a credential and its profile. Never includes password, OTP or MFA secret."""

    id: int
    user_id: int
    email: str
    name: str | None = None
    username: str
    role_id: int | None = None
    rolename: str | None = None
    is_profile_completed: bool = False


class SessionTokens(CamelModel):
    """Payload of a successful login (password or MFA)."""

    is_profile_completed: bool
    user: UserProjection
    token: str = Field(..., description="Access token (15 min)")
    refresh_token: str = Field(..., description="Refresh token (7 days)")


class PurposeTokenData(CamelModel):
    """Payload when login stops at an intermediate step."""

    model_config = ConfigDict(extra="forbid")

    token: str
    password_reset_required: bool | None = None
    mfa_required: bool | None = None
    mfa_setup_required: bool | None = None
    qr_code_url: str | None = None
    secret: str | None = None


class LoginResponse(CamelModel):
    """Login result; data shape depends on status."""

    status: LoginStatus
    message: str
    data: SessionTokens | PurposeTokenData


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class TokenPair(CamelModel):
    """New access/refresh pair from POST /auth/refresh-token."""

    access_token: str
    refresh_token: str


class EmailRequest(CamelModel):
    email: EmailStr


class VerifyOtpRequest(CamelModel):
    email: EmailStr
    otp: str = Field(..., min_length=1, max_length=16)


class NewPasswordRequest(CamelModel):
    new_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)


class SetupTokenRequest(CamelModel):
    token: str = Field(..., min_length=1)


class ResetTokenData(CamelModel):
    token: str


class TemporaryLoginData(CamelModel):
    """Result of exchanging a setup link for a password-reset token."""

    password_reset_required: bool = True
    token: str
    username: str
    first_name: str | None = None


class RegisterRequest(CamelModel):
    """Admin-created account; a setup link is e-mailed."""

    username: str = Field(..., min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN)
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)
    email: EmailStr
    role_id: int


class InviteRequest(CamelModel):
    """Invitation by e-mail; the e-mail doubles as username."""

    email: EmailStr
    role_id: int


class ProvisionedAccount(CamelModel):
    user_id: int
    login_id: int


class LoginStatusRequest(CamelModel):
    user_id: int
    status: Literal["Active", "Inactive"]


class CurrentUser(CamelModel):
    """Authenticated identity (id, username, role) resolved by the auth dependency."""

    id: int
    user_id: int
    username: str
    email: str
    role_id: int | None = None
    rolename: str | None = None
    company_id: str
    menu_keys: list[str] = Field(default_factory=list, description="Keys of menus the role is granted")


class UserRoleRequest(CamelModel):
    role_id: int


class ProfileCompletion(CamelModel):
    is_profile_completed: bool
