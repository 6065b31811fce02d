"""Schemas for role administration and role grants."""

from typing import Literal

from pydantic import Field

from app.schemas.common import CamelModel, Pagination


class GrantIn(CamelModel):
    """
    One menu grant. permission_id None means the menu is simply visible;
    otherwise the grant goes through that Permission.
    """

    menu_id: int
    permission_id: int | None = None


class GrantOut(CamelModel):
    id: int
    role_id: int
    menu_id: int
    menu_key: str | None = None
    menu_name: str | None = None
    grant_kind: Literal["visible", "permission"]
    permission_id: int | None = None


class RoleCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    default_role: bool = False
    session_binding_required: bool = False
    assign_all_menus: bool = False
    import_permissions_from_role_ids: list[int] = Field(default_factory=list)


class RoleUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    default_role: bool | None = None


class RoleStatusUpdate(CamelModel):
    status: Literal["enabled", "disabled"]


class RolePermissionsReplace(CamelModel):
    permissions: list[GrantIn]


class RoleOut(CamelModel):
    id: int
    name: str
    description: str | None = None
    default_role: bool = False
    session_binding_required: bool = False
    is_deleted: bool = False


class RoleDetail(RoleOut):
    permissions: list[GrantOut] = Field(default_factory=list)


class RolePage(CamelModel):
    items: list[RoleOut]
    pagination: Pagination
