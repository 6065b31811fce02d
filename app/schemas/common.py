"""Shared schema base (camelCase on the wire) and the response envelope."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Fields are snake_case in Python and camelCase in JSON; either is accepted on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(BaseModel):
    """Envelope used by every non-auth-token response and by the error handlers."""

    success: bool = True
    status_code: int = Field(default=200, alias="statusCode")
    message: str
    data: Any = None
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())

    model_config = ConfigDict(populate_by_name=True)


def to_wire(data: Any) -> Any:
    """camelCase JSON-ready form of models (also inside lists and dicts)."""
    if isinstance(data, BaseModel):
        return data.model_dump(by_alias=True, mode="json")
    if isinstance(data, list | tuple):
        return [to_wire(item) for item in data]
    if isinstance(data, dict):
        return {key: to_wire(value) for key, value in data.items()}
    return data


def ok(message: str, data: Any = None, status_code: int = 200) -> ApiResponse:
    """Build a success envelope."""
    return ApiResponse(success=True, status_code=status_code, message=message, data=to_wire(data))


class Pagination(CamelModel):
    """Page metadata for list endpoints."""

    total_items: int
    total_pages: int
    current_page: int


def paginate(total_items: int, page: int, limit: int) -> Pagination:
    """Pagination for a 1-based page of size limit."""
    total_pages = (total_items + limit - 1) // limit if limit > 0 else 0
    return Pagination(total_items=total_items, total_pages=total_pages, current_page=page)
