"""Single error boundary: maps AppError subclasses and unexpected failures to the response envelope."""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from app.core.errors import AppError
from app.schemas.common import ApiResponse

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, data: Any = None) -> JSONResponse:
    envelope = ApiResponse(success=False, status_code=status_code, message=message, data=data)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(envelope.model_dump(by_alias=True)))


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers for typed application errors, request validation and anything unexpected."""

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        log_fn = logger.error if exc.status_code >= 500 else logger.info
        log_fn(
            "Request failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": exc.status_code,
                "error_code": exc.error_code,
            },
        )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        response = error_response(exc.status_code, exc.message, exc.data or None)
        if headers:
            response.headers.update(headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return error_response(400, "Invalid request.", {"errors": errors})

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed."
        return error_response(exc.status_code, message)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", extra={"path": request.url.path, "method": request.method})
        return error_response(500, "Internal server error.")
