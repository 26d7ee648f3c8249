"""Per-request deadline and cooperative cancellation."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from .config import PIPELINE_BUDGET_SECONDS
from .errors import DeadlineExceededError, OperationCancelledError

__all__ = ["RequestContext"]


@dataclass
class RequestContext:
    """Carries the wall-clock budget and cancel flag through provider calls.

    Every provider call asks the context for its effective timeout and checks
    it before each attempt, so an abandoned or over-budget request stops at
    the next boundary instead of waiting on the network.
    """

    deadline: Optional[float] = None
    cancel_event: threading.Event = field(default_factory=threading.Event)

    @classmethod
    def with_budget(cls, seconds: float | None = PIPELINE_BUDGET_SECONDS) -> "RequestContext":
        if seconds is None or seconds <= 0:
            return cls()
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def check(self, what: str = "request") -> None:
        if self.cancelled:
            raise OperationCancelledError(f"{what} cancelled by caller")
        if self.expired():
            raise DeadlineExceededError(f"{what} exceeded the pipeline budget")

    def timeout_for(self, per_call: float) -> float:
        """Return the per-call timeout clamped to the remaining budget."""

        remaining = self.remaining()
        if remaining is None:
            return per_call
        return max(0.001, min(per_call, remaining))

    def wait(self, seconds: float) -> None:
        """Sleep up to ``seconds`` but wake early on cancellation."""

        if seconds <= 0:
            return
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self.cancel_event.wait(seconds)
