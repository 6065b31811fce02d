"""Permission catalogue endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.api.deps import DbSession, require_menu_permission
from app.schemas.common import ApiResponse, ok
from app.schemas.permissions import PermissionCreate, PermissionPage, PermissionUpdate
from app.services import permissions as permission_service
from app.services.sessions import AuthContext

router = APIRouter()

PermissionsAdmin = Annotated[AuthContext, Depends(require_menu_permission("permissions"))]


@router.post("", response_model=ApiResponse, status_code=201)
def create_permission(body: PermissionCreate, db: DbSession, admin: PermissionsAdmin) -> ApiResponse:
    permission = permission_service.create_permission(db, body, admin.credential.id)
    return ok("Permission created successfully.", permission, status_code=201)


@router.get("", response_model=ApiResponse)
def list_permissions(
    db: DbSession,
    _admin: PermissionsAdmin,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    search: Annotated[str | None, Query(max_length=255)] = None,
) -> ApiResponse:
    items, pagination = permission_service.list_permissions(db, page, limit, search)
    return ok("Permissions retrieved successfully.", PermissionPage(items=items, pagination=pagination))


@router.get("/{permission_id}", response_model=ApiResponse)
def get_permission(permission_id: int, db: DbSession, _admin: PermissionsAdmin) -> ApiResponse:
    return ok("Permission retrieved successfully.", permission_service.get_permission(db, permission_id))


@router.put("/{permission_id}", response_model=ApiResponse)
def update_permission(
    permission_id: int, body: PermissionUpdate, db: DbSession, admin: PermissionsAdmin
) -> ApiResponse:
    permission = permission_service.update_permission(db, permission_id, body, admin.credential.id)
    return ok("Permission updated successfully.", permission)


@router.delete("/{permission_id}", response_model=ApiResponse)
def delete_permission(permission_id: int, db: DbSession, admin: PermissionsAdmin) -> ApiResponse:
    permission_service.delete_permission(db, permission_id, admin.credential.id)
    return ok("Permission deleted successfully.")
