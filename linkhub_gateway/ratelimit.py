"""Per-key fixed-window rate limiting.

Every API key carries a quota (one of the allowed tiers) that bounds how many
gateway calls it may make per window. Two backends share the same contract:

 - InMemoryRateLimiter: per-process, one lock per key
 - RedisRateLimiter: shared counters for multi-process deployments

In-memory state drifts across horizontally scaled instances. That is accepted;
use the redis backend when a hard global bound matters.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .config import GatewayConfig

logger = logging.getLogger("linkhub_gateway.ratelimit")


class RateLimiter:
    """Contract: ``allow(key_id, quota)`` returns False once the window is full."""

    def allow(self, key_id: str, quota: int) -> bool:  # pragma: no cover - interface
        raise NotImplementedError


@dataclass
class RateWindow:
    """Counter state for one key inside the current window."""

    started_at: float
    count: int = 0

    def expired(self, now: float, window_seconds: float) -> bool:
        return now - self.started_at >= window_seconds


class InMemoryRateLimiter(RateLimiter):
    """Keyed fixed-window limiter (per-process)."""

    def __init__(
        self,
        window_seconds: float = 3600.0,
        max_keys: int = 20000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._window = float(window_seconds)
        self._max_keys = int(max_keys) if int(max_keys) > 0 else 20000
        self._clock = clock
        self._windows: Dict[str, RateWindow] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key_id: str) -> Optional[threading.Lock]:
        with self._registry_lock:
            lock = self._locks.get(key_id)
            if lock is None:
                # Prevent unbounded memory growth from high-cardinality keys.
                if len(self._locks) >= self._max_keys:
                    self._evict_expired_locked()
                    if len(self._locks) >= self._max_keys:
                        return None
                lock = threading.Lock()
                self._locks[key_id] = lock
            return lock

    def _evict_expired_locked(self) -> None:
        now = self._clock()
        for k, w in list(self._windows.items()):
            if not w.expired(now, self._window):
                continue
            lock = self._locks.get(k)
            # A held lock means a call for this key is in flight.
            if lock is None or not lock.acquire(blocking=False):
                continue
            try:
                self._windows.pop(k, None)
                self._locks.pop(k, None)
            finally:
                lock.release()

    def allow(self, key_id: str, quota: int) -> bool:
        if quota <= 0:
            return False
        while True:
            lock = self._lock_for(key_id)
            if lock is None:
                logger.warning("rate limiter key table full; rejecting key_id=%s", key_id)
                return False
            with lock:
                # The key may have been evicted while we waited for its lock.
                if self._locks.get(key_id) is not lock:
                    continue
                now = self._clock()
                window = self._windows.get(key_id)
                if window is None or window.expired(now, self._window):
                    window = RateWindow(started_at=now)
                    self._windows[key_id] = window
                if window.count >= quota:
                    return False
                window.count += 1
                return True

    def usage(self, key_id: str) -> int:
        """Calls counted for `key_id` in its current window."""
        window = self._windows.get(key_id)
        if window is None or window.expired(self._clock(), self._window):
            return 0
        return window.count


class RedisRateLimiter(RateLimiter):
    """Fixed-window limiter backed by atomic INCR on a shared redis."""

    def __init__(self, redis_client: Any, window_seconds: int = 3600, key_prefix: str = "linkhub:rl"):
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.redis = redis_client
        self.window_seconds = int(window_seconds)
        self.key_prefix = key_prefix

    def allow(self, key_id: str, quota: int) -> bool:
        if quota <= 0:
            return False
        bucket = int(time.time() // self.window_seconds)
        window_key = f"{self.key_prefix}:{key_id}:{bucket}"

        count = self.redis.incr(window_key)
        if count == 1:
            self.redis.expire(window_key, self.window_seconds)
        return int(count) <= quota


def build_rate_limiter_from_config(config: GatewayConfig) -> RateLimiter:
    """Return the limiter selected by LINKHUB_RATE_LIMIT_BACKEND."""
    if config.rate_limit_backend == "redis":
        import redis

        client = redis.Redis.from_url(config.redis_url, decode_responses=True)
        logger.info("rate limiting via redis at %s", config.redis_url)
        return RedisRateLimiter(client, window_seconds=config.rate_limit_window_seconds)
    return InMemoryRateLimiter(
        window_seconds=config.rate_limit_window_seconds,
        max_keys=config.rate_limit_max_keys,
    )
