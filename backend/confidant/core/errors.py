"""Error Hierarchy — typed, categorized exceptions for all broker failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (4xx) are returned to the caller, never swallowed inside the core
    - to_response() produces the REST envelope
    - Messages carry public entity ids only (no stack traces, no chat handles)

Design Decisions:
    - Single hierarchy with ConfidantError base: FastAPI global handler catches all
      (ADR: uniform error shape)
    - ConflictError carries a machine-readable reason: the matchmaker absorbs
      counselor-side conflicts and must tell them apart from user-side ones
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"
    DATABASE = "database"
    INTERNAL = "internal"


class ConflictReason(str, Enum):
    """Why a ConflictError was raised."""
    USER_HAS_ACTIVE_SESSION = "user_has_active_session"
    COUNSELOR_HAS_ACTIVE_SESSION = "counselor_has_active_session"
    SESSION_INACTIVE = "session_inactive"
    SESSION_STILL_ACTIVE = "session_still_active"
    ALREADY_PROCESSED = "already_processed"
    ALREADY_REGISTERED = "already_registered"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: str | None = None
    counselor_id: str | None = None
    user_id: str | None = None
    debug_info: dict[str, Any] | None = None


class ConfidantError(Exception):
    """Base exception for all broker errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "session_id": self.context.session_id,
                    "counselor_id": self.context.counselor_id,
                    "user_id": self.context.user_id,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ValidationError(ConfidantError):
    """Malformed input: empty reason/content, out-of-range rating, bad status literal."""
    def __init__(
        self, message: str, field: str | None = None, context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.field = field


class AuthorizationError(ConfidantError):
    """Actor is not a participant/owner of the target entity."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "NOT_AUTHORIZED", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.WARNING, context, 403,
        )


class NotFoundError(ConfidantError):
    """Referenced entity does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.WARNING, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(ConfidantError):
    """Invariant violation: duplicate active session, double processing."""
    def __init__(
        self, message: str, reason: ConflictReason, context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )
        self.reason = reason

    def to_response(self) -> dict:
        response = super().to_response()
        response["error"]["reason"] = self.reason.value
        return response


class UnavailableError(ConfidantError):
    """Target exists but is not eligible (unapproved or suspended counselor)."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "UNAVAILABLE", ErrorCategory.UNAVAILABLE,
            ErrorSeverity.WARNING, context, 422,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(ConfidantError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
