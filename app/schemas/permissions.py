"""Schemas for the permission catalogue."""

from pydantic import Field

from app.schemas.common import CamelModel, Pagination


class PermissionCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class PermissionUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None


class PermissionOut(CamelModel):
    id: int
    name: str
    description: str | None = None


class PermissionPage(CamelModel):
    items: list[PermissionOut]
    pagination: Pagination
