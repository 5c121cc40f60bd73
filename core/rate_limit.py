"""
In-process rate limiter shared by the verification and submission flows.

Two maps are kept per key: the timestamp of the last recorded action
(cooldown checks) and a day-bucketed counter (daily quotas). A third map
holds rolling failure counters used to throttle code guessing per IP.

This state lives in process memory. With more than one worker process each
worker enforces its own limits, so a multi-instance deployment should move
these maps to a shared store.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable

logger = logging.getLogger(__name__)

RETENTION = timedelta(days=2)
SWEEP_INTERVAL = timedelta(hours=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RateLimiter:
    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._last_action: dict[str, datetime] = {}
        self._daily: dict[tuple[str, str], int] = {}
        self._failures: dict[str, tuple[int, datetime]] = {}
        self._last_sweep = clock()

    def retry_after(self, key: str, cooldown: timedelta) -> int:
        """Seconds until ``key`` may act again; 0 when it is allowed now."""
        now = self._clock()
        with self._lock:
            last = self._last_action.get(key)
        if last is None:
            return 0
        remaining = cooldown - (now - last)
        if remaining <= timedelta(0):
            return 0
        return max(1, int(remaining.total_seconds() + 0.999))

    def record(self, key: str) -> None:
        now = self._clock()
        bucket = (key, now.date().isoformat())
        with self._lock:
            self._last_action[key] = now
            self._daily[bucket] = self._daily.get(bucket, 0) + 1
            self._sweep(now)

    def daily_count(self, key: str) -> int:
        bucket = (key, self._clock().date().isoformat())
        with self._lock:
            return self._daily.get(bucket, 0)

    def failures(self, key: str, window: timedelta) -> int:
        now = self._clock()
        with self._lock:
            entry = self._failures.get(key)
            if entry is None:
                return 0
            count, last = entry
            if now - last >= window:
                del self._failures[key]
                return 0
            return count

    def add_failure(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            count, _ = self._failures.get(key, (0, now))
            self._failures[key] = (count + 1, now)
            self._sweep(now)
            return count + 1

    def clear_failures(self, key: str) -> None:
        with self._lock:
            self._failures.pop(key, None)

    def _sweep(self, now: datetime) -> None:
        # caller holds the lock
        if now - self._last_sweep < SWEEP_INTERVAL:
            return
        self._last_sweep = now
        cutoff = now - RETENTION
        cutoff_day = cutoff.date().isoformat()
        stale = [k for k, ts in self._last_action.items() if ts < cutoff]
        for k in stale:
            del self._last_action[k]
        for bucket in [b for b in self._daily if b[1] < cutoff_day]:
            del self._daily[bucket]
        for k in [k for k, (_, ts) in self._failures.items() if ts < cutoff]:
            del self._failures[k]
        if stale:
            logger.debug("Evicted %d stale rate-limit entries", len(stale))
