"""Typed errors raised by the search pipeline.

Each error knows the HTTP status it maps to and whether the shared retry
utility may repeat the operation that raised it.
"""

from typing import Any


class SearchError(Exception):
    """Base class for search pipeline failures.

    Attributes:
        operation: Name of the failed operation (e.g. "vector_query")
        cause: Original exception, if any
        details: Extra context for operators (never secrets)
    """

    status_code: int = 500
    retryable: bool = False
    title: str = "Internal server error"

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.cause = cause
        self.details = details or {}
        if cause is not None:
            self.__cause__ = cause

    def to_debug(self) -> dict[str, Any]:
        """Return operator-facing debug fields."""
        return {
            "operation": self.operation,
            "cause_class": type(self.cause).__name__ if self.cause else type(self).__name__,
            "cause_message": str(self.cause) if self.cause else self.message,
        }


class QueryValidationError(SearchError):
    """Missing or malformed query."""

    status_code = 400
    title = "Invalid request"


class FilterValidationError(QueryValidationError):
    """Metadata filter failed validation."""

    title = "Invalid filter"


class AuthenticationError(SearchError):
    """Missing/expired session or rejected upstream credential."""

    status_code = 401
    title = "Authentication failed"


class AuthorizationError(SearchError):
    """Authenticated but not allowed (e.g. no OpCo and not admin)."""

    status_code = 403
    title = "Access denied"


class ResourceNotFoundError(SearchError):
    """Referenced index, collection, or model does not exist."""

    status_code = 404
    title = "Resource not found"


class RateLimitError(SearchError):
    """Upstream rate limit hit."""

    status_code = 429
    retryable = True
    title = "Rate limit exceeded. Please try again in a few moments."


class TransientNetworkError(SearchError):
    """Connection reset, DNS failure, or upstream 5xx."""

    status_code = 503
    retryable = True
    title = "Service temporarily unavailable. Please try again."


class UpstreamTimeoutError(SearchError):
    """An external call exceeded its deadline."""

    status_code = 504
    title = "Request timeout. The query took too long to process."


class DimensionMismatchError(SearchError):
    """Embedding length differs from the index dimension."""

    status_code = 500
    title = "Embedding dimension mismatch. Please contact support."
