"""JSON-over-HTTP client with retries, rate limiting and request budgets."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from ..config import (
    PROVIDER_BACKOFF_MAX_SECONDS,
    PROVIDER_MAX_RETRIES,
    PROVIDER_TIMEOUT_SECONDS,
)
from ..context import RequestContext
from ..errors import (
    DeadlineExceededError,
    ProviderError,
    ProviderResponseError,
    RequestAbortedError,
)
from .rate_limiter import RateLimiter
from .response_handling import classify_response_status
from .session import get_default_session

LOGGER = logging.getLogger(__name__)

__all__ = ["ProviderClient"]


class ProviderClient:
    """Encapsulates provider JSON fetching with retries and throttling.

    Each call checks the :class:`RequestContext` before every attempt, uses
    a timeout clamped to the remaining budget and waits out backoff on the
    context's cancel event so cancellation interrupts it.
    """

    def __init__(
        self,
        provider: str,
        *,
        session: requests.Session | None = None,
        limiter: RateLimiter | None = None,
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
        max_retries: int = PROVIDER_MAX_RETRIES,
        initial_backoff: float = 0.5,
        backoff_max: float = PROVIDER_BACKOFF_MAX_SECONDS,
    ) -> None:
        self.provider = provider
        self._session = session or get_default_session()
        self._limiter = limiter or RateLimiter(name=provider)
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._initial_backoff = initial_backoff
        self._backoff_max = backoff_max

    def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]],
        context: str,
        *,
        request_context: RequestContext | None = None,
    ) -> Any:
        return self._request_json(
            "GET", url, context, params=params, request_context=request_context
        )

    def post_json(
        self,
        url: str,
        payload: Any,
        context: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        request_context: RequestContext | None = None,
    ) -> Any:
        return self._request_json(
            "POST",
            url,
            context,
            params=params,
            payload=payload,
            request_context=request_context,
        )

    def _request_json(
        self,
        method: str,
        url: str,
        context: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        payload: Any = None,
        request_context: RequestContext | None = None,
    ) -> Any:
        ctx = request_context or RequestContext()
        backoff = self._initial_backoff
        attempt = 0
        while True:
            attempt += 1
            can_retry = attempt < self._max_retries
            ctx.check(f"{context} ({self.provider})")
            self._limiter.before_request(ctx)
            try:
                ctx.check(f"{context} ({self.provider})")
            except RequestAbortedError:
                self._limiter.after_response(None, None)
                raise
            timeout = ctx.timeout_for(self._timeout)
            response: Optional[requests.Response] = None
            try:
                if method == "GET":
                    response = self._session.get(url, params=params, timeout=timeout)
                else:
                    response = self._session.post(
                        url, params=params, json=payload, timeout=timeout
                    )
            except requests.RequestException as exc:
                self._limiter.after_response(None, None)
                if ctx.expired():
                    raise DeadlineExceededError(
                        f"{context} ({self.provider}) ran out of budget"
                    ) from exc
                if can_retry:
                    LOGGER.warning(
                        "%s network error provider=%s attempt=%s err=%s; retrying in %.1fs",
                        context,
                        self.provider,
                        attempt,
                        exc.__class__.__name__,
                        backoff,
                    )
                    ctx.wait(backoff)
                    backoff = min(backoff * 2, self._backoff_max)
                    continue
                message = f"{context} network error for {self.provider}: {exc.__class__.__name__}"
                LOGGER.error(message)
                raise ProviderError(message, provider=self.provider) from exc
            else:
                self._limiter.after_response(response.headers, response.status_code)

            action, error = classify_response_status(
                self.provider,
                response,
                context,
                attempt=attempt,
                backoff=backoff,
                can_retry=can_retry,
            )
            if action == "retry":
                ctx.wait(backoff)
                backoff = min(backoff * 2, self._backoff_max)
                continue
            if action == "raise" and error is not None:
                raise error

            try:
                return response.json()
            except ValueError as exc:
                if can_retry:
                    LOGGER.warning(
                        "Non-JSON response for %s provider=%s attempt=%s; retrying in %.1fs",
                        context,
                        self.provider,
                        attempt,
                        backoff,
                    )
                    ctx.wait(backoff)
                    backoff = min(backoff * 2, self._backoff_max)
                    continue
                message = f"{context} returned non-JSON payload from {self.provider}"
                LOGGER.error(message)
                raise ProviderResponseError(message, provider=self.provider) from exc
