# storefront/services/rate_limiter.py
"""
Sliding-window attempt counters for login brute-force protection.

Two interchangeable backends: an in-process bounded map (single worker)
and a Redis sorted set per key (shared across workers).
"""
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict, deque

import redis

from storefront.utils.retry import redis_retry
from storefront.utils.settings import (
    LOGIN_RATE_MAX_ATTEMPTS,
    LOGIN_RATE_WINDOW_SECONDS,
    LOGIN_RATE_MAX_KEYS,
    RATE_LIMIT_BACKEND,
    REDIS_URL,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class RateLimiter(ABC):
    def __init__(self, max_attempts: int = LOGIN_RATE_MAX_ATTEMPTS, window_seconds: int = LOGIN_RATE_WINDOW_SECONDS):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds

    @abstractmethod
    def hit(self, key: str) -> bool:
        """Registers an attempt. Returns False when the key is over the limit."""

    @abstractmethod
    def reset(self, key: str) -> None:
        """Forgets every attempt of the key."""


class InMemoryRateLimiter(RateLimiter):
    def __init__(self, max_attempts: int = LOGIN_RATE_MAX_ATTEMPTS, window_seconds: int = LOGIN_RATE_WINDOW_SECONDS,
                 max_keys: int = LOGIN_RATE_MAX_KEYS, clock=time.monotonic):
        super().__init__(max_attempts, window_seconds)
        self.max_keys = max_keys
        self.clock = clock
        self._attempts: "OrderedDict[str, deque]" = OrderedDict()
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        now = self.clock()
        with self._lock:
            attempts = self._attempts.get(key)
            if attempts is None:
                attempts = deque()
                self._attempts[key] = attempts
            self._attempts.move_to_end(key)

            while attempts and now - attempts[0] >= self.window_seconds:
                attempts.popleft()

            if len(attempts) >= self.max_attempts:
                return False

            attempts.append(now)

            # least recently used keys go first
            while len(self._attempts) > self.max_keys:
                self._attempts.popitem(last=False)
            return True

    def reset(self, key: str) -> None:
        with self._lock:
            self._attempts.pop(key, None)


class RedisRateLimiter(RateLimiter):
    def __init__(self, url: str | None = None, max_attempts: int = LOGIN_RATE_MAX_ATTEMPTS,
                 window_seconds: int = LOGIN_RATE_WINDOW_SECONDS, prefix: str = "ratelimit:login"):
        super().__init__(max_attempts, window_seconds)
        self.prefix = prefix
        self.redis = redis.Redis.from_url(url or REDIS_URL, decode_responses=True)

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    @redis_retry()
    def hit(self, key: str) -> bool:
        name = self._key(key)
        now = time.time()

        pipe = self.redis.pipeline()
        pipe.zremrangebyscore(name, 0, now - self.window_seconds)
        pipe.zcard(name)
        _, count = pipe.execute()

        if count >= self.max_attempts:
            return False

        pipe = self.redis.pipeline()
        pipe.zadd(name, {f"{now:.6f}": now})
        pipe.expire(name, self.window_seconds)
        pipe.execute()
        return True

    @redis_retry()
    def reset(self, key: str) -> None:
        self.redis.delete(self._key(key))


def build_rate_limiter(backend: str = RATE_LIMIT_BACKEND) -> RateLimiter:
    if backend == "redis":
        logger.info("Login rate limiter backed by Redis")
        return RedisRateLimiter()
    return InMemoryRateLimiter()
