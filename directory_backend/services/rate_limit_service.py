"""Admin request throttling.

Fixed windows per key (``admin:<user_id>``, ``admin-ip:<ip>``). The first
hit after a window's ``reset_at`` starts a fresh window with count 1. This is
a defense-in-depth throttle, not a security boundary: the in-memory store is
lost on restart.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

import redis

from directory_backend.core.config import Settings, settings as default_settings
from directory_backend.core.exceptions import RateLimited

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    def hit(self, key: str) -> None:
        """Count one request against ``key``; raise RateLimited when over budget."""
        ...

    def reset(self) -> None:
        ...


@dataclass
class RateLimitEntry:
    count: int
    reset_at: float


class InMemoryRateLimiter:
    """Process-local limiter. Lock-guarded so concurrent hits are never lost."""

    def __init__(
        self,
        max_requests: int = 120,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> None:
        with self._lock:
            now = self.clock()
            current = self._entries.get(key)

            if current is None or current.reset_at <= now:
                self._entries[key] = RateLimitEntry(count=1, reset_at=now + self.window_seconds)
                return

            if current.count >= self.max_requests:
                retry_after = max(0.0, current.reset_at - now)
                logger.warning("Rate limit exceeded for %s (retry in %.1fs)", key, retry_after)
                raise RateLimited(retry_after=retry_after)

            current.count += 1

    def get(self, key: str) -> Optional[RateLimitEntry]:
        with self._lock:
            return self._entries.get(key)

    def reset(self) -> None:
        """Clear every window (tests and admin tooling)."""
        with self._lock:
            self._entries.clear()


class RedisRateLimiter:
    """Shared limiter for multi-process deployments, backed by Redis INCR."""

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        max_requests: int = 120,
        window_seconds: float = 60,
        prefix: str = "ratelimit:",
    ):
        self._client = client
        self.max_requests = max_requests
        self.window_ms = int(window_seconds * 1000)
        self.prefix = prefix

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                default_settings.REDIS_URL,
                decode_responses=True,
                max_connections=100,
            )
        return self._client

    def hit(self, key: str) -> None:
        redis_key = f"{self.prefix}{key}"
        pipe = self.client.pipeline()
        pipe.incr(redis_key)
        pipe.pttl(redis_key)
        count, ttl_ms = pipe.execute()

        if count == 1 or ttl_ms < 0:
            self.client.pexpire(redis_key, self.window_ms)
            ttl_ms = self.window_ms

        if count > self.max_requests:
            logger.warning("Rate limit exceeded for %s", key)
            raise RateLimited(retry_after=ttl_ms / 1000)

    def reset(self) -> None:
        keys = list(self.client.scan_iter(f"{self.prefix}*"))
        if keys:
            self.client.delete(*keys)


def build_rate_limiter(config: Optional[Settings] = None) -> RateLimiter:
    """Pick the limiter implementation named by ``RATE_LIMIT_BACKEND``."""
    config = config or default_settings
    if config.RATE_LIMIT_BACKEND == "redis":
        return RedisRateLimiter(
            client=redis.from_url(config.REDIS_URL, decode_responses=True),
            max_requests=config.ADMIN_RATE_LIMIT_MAX_REQUESTS,
            window_seconds=config.ADMIN_RATE_LIMIT_WINDOW_SECONDS,
        )
    return InMemoryRateLimiter(
        max_requests=config.ADMIN_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=config.ADMIN_RATE_LIMIT_WINDOW_SECONDS,
    )
