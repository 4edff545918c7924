"""Error Handlers — map every failure to the broker's JSON error envelope.

Invariants:
    - ConfidantError → its own http_status and to_response() body
      (ConflictError adds reason, ValidationError adds field when known)
    - RequestValidationError → 400 with one detail per offending field
    - Anything else → 500 with a fixed message, never internal details
    - 5xx are logged at ERROR, 4xx at WARNING

Design Decisions:
    - Handlers are plain module functions registered in one place, so main.py
      only calls register_error_handlers(app)
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from confidant.core.errors import ConfidantError, ErrorSeverity, ValidationError

logger = logging.getLogger(__name__)


def _envelope(code: str, message: str, category: str, severity: ErrorSeverity, **extra) -> dict:
    return {
        "error": {
            "code": code,
            "message": message,
            "category": category,
            "severity": severity.value,
            **extra,
        },
    }


async def confidant_error_handler(request: Request, exc: ConfidantError) -> JSONResponse:
    log = logger.error if exc.http_status >= 500 else logger.warning
    log(
        f"{type(exc).__name__}: {exc.message}",
        extra={"error_code": exc.code, "path": request.url.path},
    )
    body = exc.to_response()
    if isinstance(exc, ValidationError) and exc.field:
        body["error"]["field"] = exc.field
    return JSONResponse(status_code=exc.http_status, content=body)


async def request_validation_handler(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(loc) for loc in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    logger.warning(
        f"Rejected request body ({len(details)} field errors)",
        extra={"error_code": "VALIDATION_ERROR", "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_envelope(
            "VALIDATION_ERROR", "Invalid request data", "validation",
            ErrorSeverity.WARNING, details=details,
        ),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        extra={"error_type": type(exc).__name__, "path": request.url.path},
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_envelope(
            "INTERNAL_ERROR", "An unexpected error occurred", "internal",
            ErrorSeverity.CRITICAL,
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ConfidantError, confidant_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
