"""FastAPI dependencies: bearer-token auth, purpose tokens, menu permission gates and collaborators."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Annotated, Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.core.errors import AuthenticationError
from app.models.credential import Credential
from app.services.access import check_any_permission, check_permission
from app.services.hrm_client import HrmNotifier
from app.services.notifications import EmailSender
from app.services.sessions import AuthContext, authenticate_access_token, load_credential
from app.services.tokens import TokenPurpose, credential_id_of, decode_token

security = HTTPBearer(auto_error=False)

BearerCredentials = Annotated[HTTPAuthorizationCredentials | None, Depends(security)]
DbSession = Annotated[Session, Depends(get_db)]


def _bearer_token(credentials: HTTPAuthorizationCredentials | None) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authorized, token missing")
    return credentials.credentials


def get_auth_context(credentials: BearerCredentials, db: DbSession) -> AuthContext:
    """Dependency: valid access token with a current session and current permissions."""
    return authenticate_access_token(db, _bearer_token(credentials))


CurrentAuth = Annotated[AuthContext, Depends(get_auth_context)]


@dataclass
class PurposeContext:
    """Credential behind a single-step token (password reset, MFA challenge, OTP reset)."""

    credential: Credential
    claims: dict[str, Any]
    fully_authenticated: bool = False


def purpose_token(*purposes: TokenPurpose) -> Callable[..., PurposeContext]:
    """
    Dependency factory accepting only tokens of the given purposes. An access
    token, when allowed, goes through the full per-request validation.
    """

    def dependency(credentials: BearerCredentials, db: DbSession) -> PurposeContext:
        token = _bearer_token(credentials)
        claims = decode_token(token, *purposes)
        if claims["purpose"] == TokenPurpose.ACCESS.value:
            ctx = authenticate_access_token(db, token)
            return PurposeContext(credential=ctx.credential, claims=ctx.claims, fully_authenticated=True)
        credential = load_credential(db, credential_id_of(claims))
        if credential is None:
            raise AuthenticationError("User not found")
        return PurposeContext(credential=credential, claims=claims)

    return dependency


def require_menu_permission(menu_key: str) -> Callable[..., AuthContext]:
    """Dependency factory: authenticated and holding a grant on menu_key (403 otherwise)."""

    def dependency(ctx: CurrentAuth, db: DbSession) -> AuthContext:
        check_permission(db, ctx.role_id, menu_key)
        return ctx

    return dependency


def require_any_menu_permission(menu_keys: Sequence[str]) -> Callable[..., AuthContext]:
    keys = list(menu_keys)

    def dependency(ctx: CurrentAuth, db: DbSession) -> AuthContext:
        check_any_permission(db, ctx.role_id, keys)
        return ctx

    return dependency


def get_email_sender() -> EmailSender:
    return EmailSender()


def get_hrm_notifier() -> HrmNotifier:
    return HrmNotifier(get_settings())
