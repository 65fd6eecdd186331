"""Rate gate consulted before a search runs.

The search core only depends on the ``RateGate`` protocol. ``InMemoryRateGate``
is a fixed-window counter for single-process use (the CLI and tests); a
deployment behind several workers should provide a shared implementation.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: Optional[float] = None


class RateGate(Protocol):
    async def check(self, identity: str) -> RateLimitDecision:
        """Count one request for ``identity`` and decide whether it may proceed."""
        ...


class InMemoryRateGate:
    """Fixed-window rate limiter keyed by caller identity."""

    def __init__(
        self,
        limit: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._slot: Optional[int] = None
        self._counters: Dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def check(self, identity: str) -> RateLimitDecision:
        now = self._clock()
        slot = int(math.floor(now / self.window_seconds))

        async with self._lock:
            if slot != self._slot:
                # Counters from earlier windows can never deny again
                self._counters.clear()
                self._slot = slot
            count = self._counters.get(identity, 0) + 1
            self._counters[identity] = count

        if count <= self.limit:
            return RateLimitDecision(allowed=True)

        retry_after = (slot + 1) * self.window_seconds - now
        return RateLimitDecision(allowed=False, retry_after=max(retry_after, 0.0))
