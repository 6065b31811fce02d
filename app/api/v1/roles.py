"""Role administration endpoints."""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query

from app.api.deps import DbSession, require_menu_permission
from app.schemas.common import ApiResponse, ok
from app.schemas.roles import RoleCreate, RolePage, RolePermissionsReplace, RoleStatusUpdate, RoleUpdate
from app.services import grants as grant_service
from app.services import roles as role_service
from app.services.sessions import AuthContext

router = APIRouter()

RolesAdmin = Annotated[AuthContext, Depends(require_menu_permission("roles"))]


@router.post("", response_model=ApiResponse, status_code=201)
def create_role(body: RoleCreate, db: DbSession, admin: RolesAdmin) -> ApiResponse:
    """
    Create a role. assignAllMenus grants every active menu as visible;
    importPermissionsFromRoleIds copies the grants of existing roles instead.
    """
    role = role_service.create_role(db, body, admin.credential.id)
    return ok("Role created successfully.", role, status_code=201)


@router.get("", response_model=ApiResponse)
def list_roles(
    db: DbSession,
    _admin: RolesAdmin,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    search: Annotated[str | None, Query(max_length=255)] = None,
    status: Literal["active", "inactive", "all"] = "active",
) -> ApiResponse:
    items, pagination = role_service.list_roles(db, page, limit, search, status)
    return ok("Roles retrieved successfully.", RolePage(items=items, pagination=pagination))


@router.get("/names", response_model=ApiResponse)
def list_role_names(db: DbSession, _admin: RolesAdmin) -> ApiResponse:
    return ok("Roles retrieved successfully.", role_service.list_role_names(db))


@router.get("/{role_id}", response_model=ApiResponse)
def get_role(role_id: int, db: DbSession, _admin: RolesAdmin) -> ApiResponse:
    return ok("Role retrieved successfully.", role_service.get_role(db, role_id))


@router.put("/{role_id}", response_model=ApiResponse)
def update_role(role_id: int, body: RoleUpdate, db: DbSession, admin: RolesAdmin) -> ApiResponse:
    return ok("Role updated successfully.", role_service.update_role(db, role_id, body, admin.credential.id))


@router.patch("/{role_id}/status", response_model=ApiResponse)
def set_role_status(role_id: int, body: RoleStatusUpdate, db: DbSession, admin: RolesAdmin) -> ApiResponse:
    role, message = role_service.set_role_status(db, role_id, body.status == "enabled", admin.credential.id)
    return ok(message, role)


@router.get("/{role_id}/permissions", response_model=ApiResponse)
def list_role_permissions(role_id: int, db: DbSession, _admin: RolesAdmin) -> ApiResponse:
    grant_service.get_active_role(db, role_id)
    return ok("Role permissions retrieved successfully.", grant_service.list_role_grants(db, role_id))


@router.put("/{role_id}/permissions", response_model=ApiResponse)
def replace_role_permissions(
    role_id: int, body: RolePermissionsReplace, db: DbSession, admin: RolesAdmin
) -> ApiResponse:
    """
    Replace the role's whole grant set in one transaction. When the set
    changes, every member must log in again.
    """
    grants = grant_service.replace_role_grants(db, role_id, body.permissions, admin.credential.id)
    return ok("Role permissions updated successfully.", grants)
