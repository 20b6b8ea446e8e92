# storefront/services/lock_service.py
import secrets
from contextlib import contextmanager

import redis

from storefront.domain.errors import Conflict
from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL, CHECKOUT_LOCK_TTL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

# compare-and-delete executed atomically by Redis: only the holder's token
# can release the key
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockService:
    """
    Short-lived Redis locks.
    One checkout at a time per cart owner (user or session).
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def checkout_key(owner_key: str) -> str:
        return f"checkout:{owner_key}:lock"

    @redis_retry()
    def acquire(self, key: str, token: str, ttl: int) -> bool:
        logger.info(f"Acquire lock {key}")
        # SET checkout:user:1:lock <token> NX EX <ttl>
        return bool(self.redis.set(name=key, value=token, nx=True, ex=ttl))

    @redis_retry()
    def release(self, key: str, token: str) -> bool:
        logger.info(f"Release lock {key}")
        return bool(self.redis.eval(_RELEASE_LUA, 1, key, token))

    @contextmanager
    def checkout_lock(self, owner_key: str, ttl: int = CHECKOUT_LOCK_TTL_SECONDS):
        key = self.checkout_key(owner_key)
        token = secrets.token_hex(16)

        if not self.acquire(key, token, ttl):
            raise Conflict("A checkout for this cart is already in progress")

        try:
            yield
        finally:
            try:
                self.release(key, token)
            except redis.RedisError:
                # the key expires on its own after ttl
                logger.exception(f"Failed to release lock {key}")
