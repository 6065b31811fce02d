"""Liveness endpoint for load balancers; reports database reachability and HRM wiring."""

from fastapi import APIRouter

from app.api.deps import DbSession
from app.core.config import settings
from app.core.database import check_db_connected
from app.schemas.health import HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse, response_model_by_alias=True)
def get_health(db: DbSession) -> HealthResponse:
    connected = check_db_connected(db)
    return HealthResponse(
        status="ok" if connected else "degraded",
        environment=settings.APP_ENV,
        database="connected" if connected else "disconnected",
        hrm_service="configured" if settings.HRM_SERVICE_URL else "disabled",
    )
