"""Schemas for menus, menu trees and menu grants."""

from pydantic import Field

from app.schemas.common import CamelModel
from app.schemas.roles import GrantIn


class MenuCreate(CamelModel):
    menu_key: str = Field(..., min_length=1, max_length=128)
    menu_name: str = Field(..., min_length=1, max_length=255)
    route: str = Field(..., min_length=1, max_length=512)
    icon: str = Field(default="circle", max_length=64)
    is_parent: bool = False
    parent_id: int | None = None
    order_index: int | None = Field(default=None, ge=0)
    status: int = Field(default=1, ge=0, le=1)


class MenuUpdate(CamelModel):
    """Partial update. Setting parent_id moves the menu; order_index reorders it."""

    menu_key: str | None = Field(default=None, min_length=1, max_length=128)
    menu_name: str | None = Field(default=None, min_length=1, max_length=255)
    route: str | None = Field(default=None, min_length=1, max_length=512)
    icon: str | None = Field(default=None, max_length=64)
    is_parent: bool | None = None
    parent_id: int | None = None
    order_index: int | None = Field(default=None, ge=0)
    status: int | None = Field(default=None, ge=0, le=1)


class MenuOut(CamelModel):
    id: int
    menu_key: str
    menu_name: str
    route: str
    icon: str
    is_parent: bool
    parent_id: int | None = None
    order_index: int
    status: int


class MenuNode(MenuOut):
    children: list["MenuNode"] = Field(default_factory=list)


class MenuGrantAssign(CamelModel):
    role_id: int
    menu_id: int
    permission_id: int | None = None


class BulkGrantAssign(CamelModel):
    role_id: int
    permissions: list[GrantIn]


class BulkGrantResult(CamelModel):
    assigned: list[int] = Field(default_factory=list, description="Menu ids granted")
    failed: list[dict] = Field(default_factory=list, description="Per-item failures")
