"""Per-user cool-down between /verify requests."""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional

from .config import RATE_LIMIT_WINDOW

logger = logging.getLogger(__name__)


class RateLimiter:
    def __init__(
        self,
        window: float = RATE_LIMIT_WINDOW,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.window = window
        self._clock = clock
        self._last_attempt: Dict[int, float] = {}

    def try_acquire(self, identity: int) -> bool:
        """Record an attempt and return True, or return False inside the window."""
        now = self._clock()
        last = self._last_attempt.get(identity)
        if last is not None and now - last < self.window:
            return False
        self._last_attempt[identity] = now
        return True

    def retry_after(self, identity: int) -> float:
        """Seconds until ``identity`` may try again (0 when allowed now)."""
        last = self._last_attempt.get(identity)
        if last is None:
            return 0.0
        return max(0.0, self.window - (self._clock() - last))

    def prune(self, now: Optional[float] = None) -> int:
        """Drop records older than twice the window. Returns how many were dropped."""
        now = self._clock() if now is None else now
        cutoff = now - 2 * self.window
        stale = [identity for identity, at in self._last_attempt.items() if at < cutoff]
        for identity in stale:
            del self._last_attempt[identity]
        if stale:
            logger.debug("rate_limit_pruned count=%d", len(stale))
        return len(stale)

    def __len__(self) -> int:
        return len(self._last_attempt)
