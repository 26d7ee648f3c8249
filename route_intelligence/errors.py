"""Central error types used across the engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .models import RoutingFailure


class RouteEngineError(RuntimeError):
    """Base error for route intelligence failures."""


class ProviderError(RouteEngineError):
    """Raised when a single routing or elevation provider attempt fails."""

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class ProviderHTTPError(ProviderError):
    """Raised when a provider answers with a non-retryable HTTP status."""

    def __init__(
        self, message: str, *, provider: str | None = None, status: int | None = None
    ) -> None:
        super().__init__(message, provider=provider)
        self.status = status


class ProviderRateLimitedError(ProviderHTTPError):
    """Raised when a provider keeps answering 429 after retries."""


class ProviderUnavailableError(ProviderError):
    """Raised when a provider is not configured or rejects our credentials."""


class ProviderResponseError(ProviderError):
    """Raised when a provider payload is malformed or missing required data."""


class RequestAbortedError(RouteEngineError):
    """Base error for requests stopped by deadline or cancellation."""


class DeadlineExceededError(RequestAbortedError):
    """Raised when the pipeline wall-clock budget is exhausted."""


class OperationCancelledError(RequestAbortedError):
    """Raised when the calling workflow cancelled the request."""


class NoRouteFoundError(RouteEngineError):
    """Raised when no provider produced a usable route."""

    def __init__(self, failure: "RoutingFailure") -> None:
        super().__init__(failure.message)
        self.failure = failure


class RouteValidationError(ValueError):
    """Raised when caller input is structurally invalid."""


class GeometryValidationError(RouteValidationError):
    """Raised for degenerate or malformed route geometry."""


class WorkoutValidationError(RouteValidationError):
    """Raised for empty or malformed workout structures."""


__all__ = [
    "RouteEngineError",
    "ProviderError",
    "ProviderHTTPError",
    "ProviderRateLimitedError",
    "ProviderUnavailableError",
    "ProviderResponseError",
    "RequestAbortedError",
    "DeadlineExceededError",
    "OperationCancelledError",
    "NoRouteFoundError",
    "RouteValidationError",
    "GeometryValidationError",
    "WorkoutValidationError",
]
