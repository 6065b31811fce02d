"""Pydantic request/response schemas."""

from app.schemas.auth import CurrentUser, LoginRequest, LoginResponse, TokenPair, UserProjection
from app.schemas.common import ApiResponse, CamelModel, Pagination, ok, paginate
from app.schemas.health import HealthResponse
from app.schemas.menus import MenuNode, MenuOut
from app.schemas.permissions import PermissionOut
from app.schemas.roles import GrantIn, GrantOut, RoleOut
from app.schemas.security import SecuritySettingsOut

__all__ = [
    "ApiResponse",
    "CamelModel",
    "CurrentUser",
    "GrantIn",
    "GrantOut",
    "HealthResponse",
    "LoginRequest",
    "LoginResponse",
    "MenuNode",
    "MenuOut",
    "Pagination",
    "PermissionOut",
    "RoleOut",
    "SecuritySettingsOut",
    "TokenPair",
    "UserProjection",
    "ok",
    "paginate",
]
