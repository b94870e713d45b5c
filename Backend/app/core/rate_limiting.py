# Backend/app/core/rate_limiting.py
"""
Rate limiting using a fixed window per client key.

The table lives in process memory and is the only state shared between
concurrent requests. One instance is built per app (see ``create_app``) and
handed to the request gate; it owns its own lock so increment-and-compare
is atomic across tasks and threads.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

from app.core.logging import get_logger

logger = get_logger()

DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_SECONDS = 60
DEFAULT_SWEEP_THRESHOLD = 10_000


@dataclass
class RateLimitRecord:
    count: int
    window_reset_at: float


class FixedWindowRateLimiter:
    """
    Fixed window counter keyed by client identifier.

    A window starts on the first request of a key and lasts ``window_seconds``.
    Once it has expired the next request opens a new window with count 1.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        *,
        sweep_threshold: int = DEFAULT_SWEEP_THRESHOLD,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.sweep_threshold = sweep_threshold
        self._clock = clock
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def hit(self, key: str) -> bool:
        """
        Count one request for ``key``.

        Returns True if the request fits in the current window (allowed),
        False if the window's quota is already used up (blocked). Blocked
        requests are not counted.
        """
        now = self._clock()
        with self._lock:
            record = self._records.get(key)
            if record is None or now >= record.window_reset_at:
                self._records[key] = RateLimitRecord(count=1, window_reset_at=now + self.window_seconds)
                if len(self._records) > self.sweep_threshold:
                    self._sweep(now)
                return True

            if record.count >= self.max_requests:
                return False

            record.count += 1
            return True

    def retry_after(self, key: str) -> int:
        """Seconds until the current window for ``key`` resets (at least 1)."""
        now = self._clock()
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return 0
            return max(1, int(record.window_reset_at - now + 0.999))

    def reset(self) -> None:
        with self._lock:
            self._records.clear()

    def _sweep(self, now: float) -> None:
        # Caller holds the lock.
        expired = [k for k, rec in self._records.items() if now >= rec.window_reset_at]
        for k in expired:
            del self._records[k]
        logger.info("rate_limit_table_swept", removed=len(expired), remaining=len(self._records))
