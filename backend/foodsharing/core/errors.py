"""Error Hierarchy — typed, categorized exceptions for all Foodsharing failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - NotFound and Forbidden are distinct classes: "no such user" never looks like "insufficient rights"
    - InvalidTransitionError is never a subclass of ResourceNotFoundError (a logic error is not an empty queue)
    - DatabaseError always carries the operation name and, when known, the entity identity
    - to_response() produces REST envelope; no internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with FoodsharingError base: FastAPI global handler catches all (ADR: uniform error shape)
    - QueueEmptyError subclasses ResourceNotFoundError: an empty queue is a NotFound outcome,
      callers that only care about "nothing there" catch the parent
    - ErrorContext as dataclass: rich observability without coupling to logging framework
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
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    operation: str | None = None
    user_id: int | None = None
    group_id: int | None = None
    file_id: int | None = None
    debug_info: dict[str, Any] | None = None


class FoodsharingError(Exception):
    """Base exception for all Foodsharing errors."""

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
                    "operation": self.context.operation,
                    "user_id": self.context.user_id,
                    "group_id": self.context.group_id,
                    "file_id": self.context.file_id,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ValidationError(FoodsharingError):
    """Input rejected before reaching the store."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class ResourceNotFoundError(FoodsharingError):
    """Requested resource does not exist."""
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


class QueueEmptyError(ResourceNotFoundError):
    """No file is waiting to be claimed."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__("File", "next", context)
        self.message = "No file is waiting for storage upload"
        self.args = (self.message,)
        self.code = "QUEUE_EMPTY"
        self.severity = ErrorSeverity.INFO


class ForbiddenError(FoodsharingError):
    """Acting user lacks the required capability."""
    def __init__(
        self, user_id: int, capability: str, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.user_id = user_id
        super().__init__(
            f"User {user_id} lacks capability {capability}",
            "FORBIDDEN", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.WARNING, ctx, 403,
        )
        self.capability = capability


class InvalidTransitionError(FoodsharingError):
    """Attempted file status change is not in the transition table."""
    def __init__(
        self, current: str, event: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Cannot apply '{event}' to a file in status {current}",
            "INVALID_TRANSITION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 409,
        )
        self.current = current
        self.event = event


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(FoodsharingError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.operation = ctx.operation or operation
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, ctx, 503,
        )
        self.operation = operation
