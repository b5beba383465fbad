"""Error Handlers — global exception handlers for the Foodsharing API.

Invariants:
    - FoodsharingError → its own to_response() envelope and http_status
    - HTTPException (e.g. 401 from the actor header) → same envelope, code from status
    - RequestValidationError → 400 with one entry per offending field
    - Exception (catch-all) → 500, never leaks internal details
    - Every body has the shape {"error": {code, message, category, severity, ...}}

Design Decisions:
    - Layered handlers: domain (FoodsharingError), HTTP (Starlette), validation (Pydantic),
      catch-all (Exception)
    - Non-domain envelopes built by _envelope(), so clients parse one shape
    - Extracted from main.py (ADR: main.py only wires the app)
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from foodsharing.core.errors import FoodsharingError, ErrorSeverity

logger = logging.getLogger(__name__)

_HTTP_ERROR_CODES = {
    status.HTTP_401_UNAUTHORIZED: ("UNAUTHORIZED", "authorization"),
    status.HTTP_404_NOT_FOUND: ("NOT_FOUND", "not_found"),
    status.HTTP_405_METHOD_NOT_ALLOWED: ("METHOD_NOT_ALLOWED", "validation"),
}


def _envelope(
    code: str, message: str, category: str, severity: ErrorSeverity, **extra,
) -> dict:
    return {
        "error": {
            "code": code,
            "message": message,
            "category": category,
            "severity": severity.value,
            **extra,
        },
    }


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(FoodsharingError)
    async def domain_error_handler(request: Request, exc: FoodsharingError):
        level = logging.ERROR if exc.http_status >= 500 else logging.WARNING
        logger.log(
            level,
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
            extra={
                "error_code": exc.code,
                "path": request.url.path,
                "user_id": exc.context.user_id,
                "group_id": exc.context.group_id,
                "file_id": exc.context.file_id,
            },
        )
        return JSONResponse(status_code=exc.http_status, content=exc.to_response())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        code, category = _HTTP_ERROR_CODES.get(
            exc.status_code, ("HTTP_ERROR", "validation"),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(code, str(exc.detail), category, ErrorSeverity.WARNING),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        details = [
            {
                "field": ".".join(str(loc) for loc in e["loc"]),
                "message": e["msg"],
                "type": e["type"],
            }
            for e in exc.errors()
        ]
        logger.warning(
            f"Validation error on {request.url.path}: {len(details)} field(s)",
            extra={"error_code": "VALIDATION_ERROR", "path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_envelope(
                "VALIDATION_ERROR", "Invalid request data", "validation",
                ErrorSeverity.ERROR, details=details,
            ),
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
            extra={"path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_envelope(
                "INTERNAL_ERROR", "An unexpected error occurred", "internal",
                ErrorSeverity.CRITICAL,
            ),
        )
