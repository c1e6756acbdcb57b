"""Engine exceptions and the standardized error payload callers render from them.

Usage:
    from models.errors import GraphUnavailable, error_response_for

    try:
        flags = await detector.detect_conflicts(team_id)
    except GraphUnavailable as exc:
        status_code, payload = error_response_for(exc, request_id=request_id)

Error payload format:
{
    "error": "GraphUnavailable",
    "message": "Graph store unavailable during find_bounded_paths",
    "details": {"operation": "find_bounded_paths"},
    "request_id": "abc-123-def-456",
    "timestamp": "2026-01-29T12:00:00Z"
}
"""

from datetime import UTC, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class EngineError(Exception):
    """Base class for errors raised by the decision engines."""


class StoreUnavailable(EngineError):
    """A backing store could not complete a call (connectivity or timeout).

    Fatal to the call, never to the process. The call produced no result;
    partial data from the failed round-trip is discarded.
    """

    store = "store"

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        message = f"{self.store} unavailable during {operation}"
        if cause is not None:
            message += f": {type(cause).__name__}: {cause}"
        super().__init__(message)


class GraphUnavailable(StoreUnavailable):
    """The causal graph store is unreachable or timed out."""

    store = "Graph store"


class DecisionStoreUnavailable(StoreUnavailable):
    """The decision store is unreachable or timed out."""

    store = "Decision store"


class InvalidQuery(EngineError, ValueError):
    """Malformed input to an engine call (empty team scope, negative budget)."""


class ErrorResponse(BaseModel):
    """Standard error payload for callers that surface engine errors.

    Attributes:
        error: Error type/code (e.g., "GraphUnavailable", "BadRequest")
        message: Human-readable error message
        details: Optional additional context about the error
        request_id: Optional request correlation ID for tracing
        timestamp: When the error occurred (ISO 8601 format)
    """

    error: str = Field(
        ...,
        description="Error type/code",
        examples=["GraphUnavailable", "BadRequest"],
    )
    message: str = Field(..., description="Human-readable error message")
    details: Optional[dict[str, Any]] = Field(
        default=None,
        description="Additional error context",
    )
    request_id: Optional[str] = Field(
        default=None,
        description="Request correlation ID for tracing",
    )
    timestamp: str = Field(
        default_factory=lambda: datetime.now(UTC).isoformat(),
        description="When the error occurred (ISO 8601)",
    )


class ErrorType:
    """Standard error type codes."""

    BAD_REQUEST = "BadRequest"
    GRAPH_UNAVAILABLE = "GraphUnavailable"
    DECISION_STORE_UNAVAILABLE = "DecisionStoreUnavailable"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"
    INTERNAL_ERROR = "InternalError"


def create_error_response(
    error: str,
    message: str,
    details: Optional[dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> dict[str, Any]:
    """Create a standardized error response dictionary.

    Args:
        error: Error type/code
        message: Human-readable error message
        details: Optional additional context
        request_id: Optional request correlation ID

    Returns:
        Dictionary suitable for a JSON response body
    """
    response = ErrorResponse(
        error=error,
        message=message,
        details=details,
        request_id=request_id,
    )
    return response.model_dump(exclude_none=True)


def error_response_for(
    exc: EngineError, request_id: Optional[str] = None
) -> tuple[int, dict[str, Any]]:
    """Map an engine error to an HTTP-style status code and payload."""
    if isinstance(exc, GraphUnavailable):
        return 503, create_error_response(
            ErrorType.GRAPH_UNAVAILABLE,
            str(exc),
            details={"operation": exc.operation},
            request_id=request_id,
        )
    if isinstance(exc, DecisionStoreUnavailable):
        return 503, create_error_response(
            ErrorType.DECISION_STORE_UNAVAILABLE,
            str(exc),
            details={"operation": exc.operation},
            request_id=request_id,
        )
    if isinstance(exc, InvalidQuery):
        return 400, create_error_response(
            ErrorType.BAD_REQUEST, str(exc), request_id=request_id
        )
    return 500, create_error_response(
        ErrorType.INTERNAL_ERROR, str(exc), request_id=request_id
    )
