"""
Domain error taxonomy.

Every engine error derives from ``AppError`` and carries:

- type:        error family (validation_error / not_found / conflict / upstream_error / internal_error)
- code:        machine-readable code (NO_IMAGE, ILLEGAL_TRANSITION, ...)
- message:     human-readable description
- detail:      optional extra payload (field errors, current state)
- status_code: HTTP status used when the error reaches a route

Services only raise; ``register_exception_handlers`` renders the response.
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for all engine errors."""

    type = "error"
    code = "UNKNOWN_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        detail: Optional[Any] = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"type": self.type, "code": self.code, "message": self.message}
        if self.detail is not None:
            body["detail"] = self.detail
        return body


class ValidationError(AppError):
    """Malformed input. 400."""

    type = "validation_error"
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(AppError):
    """Unknown order. 404."""

    type = "not_found"
    code = "NOT_FOUND"
    status_code = 404


class ConflictError(AppError):
    """Illegal transition, single-flight violation or stale decision. 409."""

    type = "conflict"
    code = "CONFLICT"
    status_code = 409


class UpstreamError(AppError):
    """OCR or payment provider failure. 502 when raised synchronously."""

    type = "upstream_error"
    code = "UPSTREAM_ERROR"
    status_code = 502


class InternalError(AppError):
    """Unexpected server-side failure. 500."""

    type = "internal_error"
    code = "INTERNAL_ERROR"
    status_code = 500


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError in the shared error shape."""
    logger.info(
        f"[ERROR] {request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}"
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render FastAPI body/query validation failures as 400s."""
    detail = [
        {
            "field": ".".join(str(part) for part in error.get("loc", []) if part != "body"),
            "message": error.get("msg", ""),
        }
        for error in exc.errors()
    ]
    body = {
        "type": ValidationError.type,
        "code": ValidationError.code,
        "message": "Request validation failed",
        "detail": detail,
    }
    return JSONResponse(status_code=400, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error handlers to an application."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
