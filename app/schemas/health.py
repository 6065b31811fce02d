"""Pydantic schemas for health check responses."""

from typing import Literal

from pydantic import Field

from app.schemas.common import CamelModel


class HealthResponse(CamelModel):
    """Response body for the health check endpoint."""

    status: Literal["ok", "degraded"] = Field(default="ok", description="ok when the database answers")
    environment: str = Field(description="Current app environment (dev or prod)")
    database: Literal["connected", "disconnected"]
    hrm_service: Literal["configured", "disabled"] = Field(
        description="Whether account-lock notifications are forwarded to the HRM service",
    )
