"""Error taxonomy and problem-detail mapping.

Every failure raised anywhere in the API is collapsed into exactly one of
the ApiError subclasses below by ``classify`` and rendered by
``problem_detail`` into the RFC 7807 style body:

    {type, title, status, detail, instance, requestId[, details][, retryAfter]}

No entity-specific error shape is produced anywhere else.
"""
import logging
from typing import Any, Optional

from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from .schemas import schema_errors
from .state_machine import StateTransitionError

logger = logging.getLogger("oneplan-core.errors")

ERROR_TYPE_BASE = "https://1plan.dev/errors"
PROBLEM_CONTENT_TYPE = "application/problem+json"


class ApiError(Exception):
    """Base class for every failure reported to API callers."""

    status: int = 500
    title: str = "Internal Server Error"
    slug: str = "internal-server-error"

    def __init__(self, detail: str, **extras: Any):
        super().__init__(detail)
        self.detail = detail
        self.extras = extras

    @property
    def type_uri(self) -> str:
        return f"{ERROR_TYPE_BASE}/{self.slug}"


class SchemaValidationError(ApiError):
    """Malformed shape or type; carries a field -> message map."""

    status = 400
    title = "Validation Error"
    slug = "validation-error"

    def __init__(self, detail: str = "Request validation failed", details: Optional[dict[str, str]] = None):
        super().__init__(detail)
        self.details = details or {}

    @classmethod
    def from_pydantic(cls, exc: Any, detail: str = "Request validation failed") -> "SchemaValidationError":
        return cls(detail, details=schema_errors(exc))


class DomainValidationError(ApiError):
    """Well-typed input that breaks a business rule (e.g., end date before start date)."""

    status = 422
    title = "Validation Failed"
    slug = "validation-failed"


class NotFoundError(ApiError):
    """A primary or referenced identifier does not resolve."""

    status = 404
    title = "Not Found"
    slug = "not-found"


class ConflictError(ApiError):
    """A natural-key uniqueness constraint would be violated."""

    status = 409
    title = "Conflict"
    slug = "conflict"


class RateLimitedError(ApiError):
    """The caller exceeded its request quota."""

    status = 429
    title = "Rate Limit Exceeded"
    slug = "rate-limit-exceeded"

    def __init__(self, retry_after: int, detail: Optional[str] = None):
        super().__init__(detail or f"Too many requests. Try again in {retry_after} seconds.")
        self.retry_after = retry_after


class InternalError(ApiError):
    """Unclassified failure; the detail never leaks internals."""

    status = 500
    title = "Internal Server Error"
    slug = "internal-server-error"

    def __init__(self, detail: str = "An unexpected error occurred"):
        super().__init__(detail)


def classify(exc: BaseException) -> ApiError:
    """
    Map any exception onto the closed taxonomy.

    Args:
        exc: Exception raised while handling a request

    Returns:
        The ApiError that represents it to the caller
    """
    if isinstance(exc, ApiError):
        return exc
    if isinstance(exc, (RequestValidationError, ValidationError)):
        return SchemaValidationError.from_pydantic(exc)
    if isinstance(exc, StateTransitionError):
        return DomainValidationError(
            str(exc),
            currentStatus=_enum_value(exc.current_status),
            requestedStatus=_enum_value(exc.requested_status),
            allowedTransitions=[_enum_value(s) for s in exc.allowed_transitions],
        )
    if isinstance(exc, IntegrityError):
        return ConflictError("Resource already exists")
    return InternalError()


def problem_detail(error: ApiError, instance: str, request_id: Optional[str]) -> dict[str, Any]:
    """
    Build the uniform problem-detail body for an error.

    Args:
        error: Classified error
        instance: Original request path
        request_id: Propagated request identifier

    Returns:
        JSON-ready problem-detail dict
    """
    body: dict[str, Any] = {
        "type": error.type_uri,
        "title": error.title,
        "status": error.status,
        "detail": error.detail,
        "instance": instance,
        "requestId": request_id,
    }
    if isinstance(error, SchemaValidationError):
        body["details"] = error.details
    if isinstance(error, RateLimitedError):
        body["retryAfter"] = error.retry_after
    for key, value in error.extras.items():
        body.setdefault(key, value)
    return body


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)
