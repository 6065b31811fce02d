"""Client for the HRM employee service: tells it an employee became inactive after a lockout."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

EMPLOYEE_STATUS_PATH = "/employee/update-employee-status"


class HrmServiceError(Exception):
    """Raised when the HRM service is unreachable, times out or rejects the update."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)


class HrmNotifier:
    """Sends employee status changes to HRM_SERVICE_URL; does nothing when it is unset."""

    def __init__(self, settings: Settings, transport: httpx.BaseTransport | None = None) -> None:
        self.base_url = settings.HRM_SERVICE_URL
        self.timeout = httpx.Timeout(settings.HRM_REQUEST_TIMEOUT_SEC)
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def update_employee_status(self, user_id: int, status: str) -> None:
        """PATCH the employee status. Raises HrmServiceError on failure."""
        if not self.enabled:
            logger.debug("HRM service not configured; skipping status update", extra={"user_id": user_id})
            return
        start = time.perf_counter()
        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                response = client.patch(EMPLOYEE_STATUS_PATH, json={"id": user_id, "status": status})
                response.raise_for_status()
        except httpx.TimeoutException as e:
            raise HrmServiceError("HRM service request timed out.", cause=e) from e
        except httpx.HTTPStatusError as e:
            raise HrmServiceError(f"HRM service returned {e.response.status_code}.", cause=e) from e
        except httpx.HTTPError as e:
            raise HrmServiceError("HRM service is unreachable.", cause=e) from e
        logger.info(
            "HRM employee status updated",
            extra={"user_id": user_id, "status": status, "latency_seconds": time.perf_counter() - start},
        )
