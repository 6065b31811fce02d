"""Menu administration, menu grants and the caller's role-based menu tree."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.api.deps import CurrentAuth, DbSession, require_menu_permission
from app.schemas.common import ApiResponse, ok
from app.schemas.menus import BulkGrantAssign, MenuCreate, MenuGrantAssign, MenuUpdate
from app.services import grants as grant_service
from app.services import menus as menu_service
from app.services.access import resolve_menu_tree
from app.services.sessions import AuthContext

router = APIRouter()

MenusAdmin = Annotated[AuthContext, Depends(require_menu_permission("menus"))]


@router.get("/role-based", response_model=ApiResponse)
def role_based_menu(ctx: CurrentAuth, db: DbSession) -> ApiResponse:
    """Menus granted to the caller's role, nested by parent and ordered by orderIndex."""
    return ok("Menu retrieved successfully.", resolve_menu_tree(db, ctx.role_id))


@router.get("/hierarchy", response_model=ApiResponse)
def hierarchy(db: DbSession, _admin: MenusAdmin) -> ApiResponse:
    return ok("Menu hierarchy retrieved successfully.", menu_service.menu_hierarchy(db))


@router.get("/list", response_model=ApiResponse)
def flat_list(db: DbSession, _admin: MenusAdmin) -> ApiResponse:
    return ok("Menus retrieved successfully.", menu_service.list_all_menus(db))


@router.get("", response_model=ApiResponse)
def list_menus(
    db: DbSession,
    _admin: MenusAdmin,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    status: Annotated[int | None, Query(ge=0, le=1)] = None,
    parent_id: Annotated[int | None, Query(alias="parentId")] = None,
    roots_only: Annotated[bool, Query(alias="rootsOnly")] = False,
) -> ApiResponse:
    items, pagination = menu_service.list_menus(db, page, limit, status, parent_id, roots_only)
    return ok("Menus retrieved successfully.", {"menus": items, "pagination": pagination})


@router.post("", response_model=ApiResponse, status_code=201)
def create_menu(body: MenuCreate, db: DbSession, admin: MenusAdmin) -> ApiResponse:
    return ok("Menu created successfully.", menu_service.create_menu(db, body, admin.credential.id), status_code=201)


@router.put("/{menu_id}", response_model=ApiResponse)
def update_menu(menu_id: int, body: MenuUpdate, db: DbSession, admin: MenusAdmin) -> ApiResponse:
    return ok("Menu updated successfully.", menu_service.update_menu(db, menu_id, body, admin.credential.id))


@router.delete("/{menu_id}", response_model=ApiResponse)
def delete_menu(menu_id: int, db: DbSession, admin: MenusAdmin) -> ApiResponse:
    menu_service.delete_menu(db, menu_id, admin.credential.id)
    return ok("Menu deleted successfully.")


@router.post("/permissions", response_model=ApiResponse)
def assign_permission(body: MenuGrantAssign, db: DbSession, admin: MenusAdmin) -> ApiResponse:
    grant, status = grant_service.assign_grant(
        db, body.role_id, body.menu_id, body.permission_id, admin.credential.id
    )
    return ok(f"Menu permission {status} successfully.", grant)


@router.post("/permissions/bulk", response_model=ApiResponse)
def bulk_assign(body: BulkGrantAssign, db: DbSession, admin: MenusAdmin) -> ApiResponse:
    result = grant_service.bulk_assign(db, body.role_id, body.permissions, admin.credential.id)
    return ok("Menu permissions assigned.", result)


@router.get("/{menu_id}/permissions", response_model=ApiResponse)
def menu_permissions(menu_id: int, db: DbSession, _admin: MenusAdmin) -> ApiResponse:
    return ok("Menu permissions retrieved successfully.", grant_service.list_menu_grants(db, menu_id))


@router.delete("/permissions/{grant_id}", response_model=ApiResponse)
def remove_permission(grant_id: int, db: DbSession, admin: MenusAdmin) -> ApiResponse:
    grant_service.remove_grant(db, grant_id, admin.credential.id)
    return ok("Menu permission removed successfully.")
