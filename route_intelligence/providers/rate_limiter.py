"""Per-provider concurrency cap and 429 throttling."""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import TYPE_CHECKING, Mapping, Tuple

from ..config import (
    RATE_LIMIT_JITTER_RANGE,
    RATE_LIMIT_MAX_CONCURRENT,
    RATE_LIMIT_NEAR_LIMIT_BUFFER,
    RATE_LIMIT_THROTTLE_SECONDS,
)

if TYPE_CHECKING:  # pragma: no cover
    from ..context import RequestContext

__all__ = ["RateLimiter"]

LOGGER = logging.getLogger(__name__)
# Longest a queued caller sleeps before rechecking its context for cancellation.
_CANCEL_POLL_SECONDS = 0.1


def _header(headers: Mapping[str, object] | None, *names: str) -> object | None:
    if not headers:
        return None
    for name in names:
        value = headers.get(name)
        if value is not None:
            return value
    return None


class RateLimiter:
    """Soft concurrency cap with throttle and jitter to smooth bursts.

    Routing and elevation providers advertise quota differently: some send
    ``Retry-After`` on 429, others ``X-RateLimit-Remaining`` on every
    response. Both push ``throttle_until`` forward so the next caller waits.
    """

    def __init__(
        self,
        max_concurrent: int = RATE_LIMIT_MAX_CONCURRENT,
        jitter_range: tuple[float, float] = RATE_LIMIT_JITTER_RANGE,
        *,
        name: str = "provider",
        throttle_seconds: float = RATE_LIMIT_THROTTLE_SECONDS,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.name = name
        self._lock = threading.Lock()
        self._cond = threading.Condition(self._lock)
        self._max_allowed = max_concurrent
        self._in_flight = 0
        self._throttle_until: float = 0.0
        self._jitter_range = jitter_range
        self._throttle_seconds = throttle_seconds
        self._near_limit_buffer = RATE_LIMIT_NEAR_LIMIT_BUFFER

    def resize(self, new_max: int) -> None:
        """Adjust maximum concurrent requests (soft limit) at runtime."""

        if new_max < 1:
            raise ValueError("new_max must be >= 1")
        with self._cond:
            old = self._max_allowed
            self._max_allowed = new_max
            self._cond.notify_all()
        LOGGER.info("RateLimiter[%s] resized from %s to %s", self.name, old, new_max)

    def before_request(self, context: "RequestContext | None" = None) -> None:
        with self._cond:
            while self._in_flight >= self._max_allowed:
                if context is None:
                    self._cond.wait()
                    continue
                if context.cancelled or context.expired():
                    break
                # Cancellation sets an Event, not this condition, so wake
                # periodically to notice it.
                remaining = context.remaining()
                slice_s = _CANCEL_POLL_SECONDS
                if remaining is not None:
                    slice_s = min(slice_s, remaining)
                self._cond.wait(slice_s)
            self._in_flight += 1
            wait_for = max(0.0, self._throttle_until - time.time())
        lo, hi = self._jitter_range
        if hi > 0:
            # Random jitter smooths bursts; not used for security-sensitive logic.
            wait_for += random.uniform(lo, hi)  # nosec B311
        if wait_for <= 0:
            return
        if context is not None:
            context.wait(wait_for)
        else:
            time.sleep(wait_for)

    def after_response(
        self, headers: Mapping[str, object] | None, status_code: int | None
    ) -> Tuple[bool, str]:
        """Release the slot and return ``(throttled, reason)``."""

        throttle_for = 0.0
        reason = ""
        if status_code == 429:
            throttle_for = self._throttle_seconds
            retry_after = _header(headers, "Retry-After", "retry-after")
            if retry_after is not None:
                try:
                    throttle_for = max(0.0, float(str(retry_after)))
                except ValueError:
                    LOGGER.debug("Unparseable Retry-After header %r", retry_after)
            reason = "rate_limited"
            LOGGER.warning(
                "%s rate limit: 429. Throttling %ss.", self.name, throttle_for
            )
        else:
            remaining_raw = _header(
                headers, "X-RateLimit-Remaining", "x-ratelimit-remaining"
            )
            remaining: int | None = None
            if remaining_raw is not None:
                try:
                    remaining = int(str(remaining_raw).split(",")[0])
                except (ValueError, TypeError) as exc:
                    LOGGER.debug(
                        "Failed to parse rate limit header remaining=%s: %s",
                        remaining_raw,
                        exc,
                    )
            if remaining is not None and remaining <= self._near_limit_buffer:
                throttle_for = self._throttle_seconds
                reason = "near_limit"
                LOGGER.info(
                    "%s approaching rate limit (%s remaining). Throttling %ss.",
                    self.name,
                    remaining,
                    throttle_for,
                )
        with self._cond:
            if throttle_for > 0:
                self._throttle_until = max(
                    self._throttle_until, time.time() + throttle_for
                )
            self._in_flight = max(0, self._in_flight - 1)
            if self._in_flight < self._max_allowed:
                self._cond.notify()
        return throttle_for > 0, reason

    def snapshot(self) -> dict[str, float | int]:
        """Return current limiter stats (used by tests and diagnostics)."""

        with self._lock:
            return {
                "max_allowed": self._max_allowed,
                "in_flight": self._in_flight,
                "throttle_until": self._throttle_until,
            }
