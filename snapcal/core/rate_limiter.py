"""Per-credential, per-model request budgets.

Tracks a rolling one-minute window and a calendar-day counter for every
(credential class, model) pair and rejects requests that would exceed either
budget. The shared demo credential is budgeted as its own class with a
tighter limit that replaces the per-model budgets.

Examples:
    >>> limiter = RateLimiter(demo_budget=RateBudget(10, 100))
    >>> limiter.check_and_consume(model, "user-key")  # raises RateLimitError when exhausted

Tests:
    - tests/unit/test_rate_limiter.py::TestRateLimiter
"""

import hashlib
import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime

from snapcal.config import ModelDescriptor
from snapcal.core.errors import RateLimitError

logger = logging.getLogger(__name__)

MINUTE_WINDOW = 60.0
DEMO_CREDENTIAL_CLASS = "demo"


@dataclass(frozen=True)
class RateBudget:
    """Request budget for one credential class on one model."""

    requests_per_minute: int
    requests_per_day: int


@dataclass
class RateLimitState:
    """Mutable counters for one (credential class, model) pair."""

    requests_this_minute: int = 0
    minute_window_start: float = 0.0
    requests_today: int = 0
    day_key: str = ""


def credential_fingerprint(credential: str) -> str:
    """Short stable digest used instead of the raw credential."""
    return hashlib.sha256(credential.encode("utf-8")).hexdigest()[:16]


def _local_day(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d")


class RateLimiter:
    """Atomic check-and-increment over minute and day budgets.

    Counters are only touched inside a lock, so interleaved analyses (or
    threads) can never both observe room under a budget and exceed it.

    Attributes:
        demo_budget: Budget applied to the demo credential on every model
    """

    def __init__(
        self,
        demo_budget: RateBudget | None = None,
        clock: Callable[[], float] = time.time,
        day_key: Callable[[float], str] = _local_day,
    ) -> None:
        self.demo_budget = demo_budget
        self._clock = clock
        self._day_key = day_key
        self._states: dict[tuple[str, str], RateLimitState] = {}
        self._lock = threading.Lock()

    def budget_for(self, model: ModelDescriptor, demo: bool = False) -> RateBudget:
        if demo and self.demo_budget is not None:
            return self.demo_budget
        return RateBudget(model.requests_per_minute, model.requests_per_day)

    @staticmethod
    def _state_key(model: ModelDescriptor, credential: str, demo: bool) -> tuple[str, str]:
        credential_class = DEMO_CREDENTIAL_CLASS if demo else credential_fingerprint(credential)
        return credential_class, model.model_id

    def check_and_consume(
        self,
        model: ModelDescriptor,
        credential: str,
        demo: bool = False,
    ) -> None:
        """Consume one request from the budget or fail.

        Args:
            model: The model about to be called.
            credential: The effective credential.
            demo: Whether the credential is the shared demo credential.

        Raises:
            RateLimitError: If the minute or day budget is exhausted.
        """
        budget = self.budget_for(model, demo)
        key = self._state_key(model, credential, demo)

        with self._lock:
            now = self._clock()
            state = self._states.setdefault(key, RateLimitState())

            if now - state.minute_window_start > MINUTE_WINDOW:
                state.requests_this_minute = 0
                state.minute_window_start = now

            today = self._day_key(now)
            if state.day_key != today:
                state.requests_today = 0
                state.day_key = today

            if state.requests_this_minute >= budget.requests_per_minute:
                retry_after = max(1, math.ceil(MINUTE_WINDOW - (now - state.minute_window_start)))
                logger.warning(
                    f"Minute budget exhausted for {model.model_id} "
                    f"({budget.requests_per_minute}/min, demo={demo})"
                )
                raise RateLimitError(
                    f"Rate limit exceeded for {model.model_id}. "
                    f"Please wait {retry_after}s and try again.",
                    retry_after=retry_after,
                )

            if state.requests_today >= budget.requests_per_day:
                logger.warning(
                    f"Daily budget exhausted for {model.model_id} "
                    f"({budget.requests_per_day}/day, demo={demo})"
                )
                raise RateLimitError(
                    f"Rate limit exceeded for {model.model_id}: daily quota of "
                    f"{budget.requests_per_day} requests reached.",
                    code="daily_quota",
                )

            state.requests_this_minute += 1
            state.requests_today += 1

    def usage(self, model: ModelDescriptor, credential: str, demo: bool = False) -> RateLimitState:
        """Snapshot of the counters for a pair (a copy)."""
        with self._lock:
            state = self._states.get(self._state_key(model, credential, demo))
            return replace(state) if state is not None else RateLimitState()

    def reset(self) -> None:
        """Forget all counters. Intended for test harnesses."""
        with self._lock:
            self._states.clear()
