"""
Distributed request lock backed by Redis.

One lock per fingerprint, held by the request id that acquired it and
bounded by a TTL so a crashed worker cannot wedge a key forever.
"""

import logging
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from docrender.core.errors import LockStoreUnavailable

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL_SECONDS = 30

# Delete the key only if it still belongs to the caller
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LockCoordinator:
    """
    Acquires and releases fingerprint locks.

    Usage:
        locks = LockCoordinator(redis)
        key = locks.lock_key(digest)
        if await locks.acquire(key, request_id):
            try:
                ...
            finally:
                await locks.release(key, request_id)
    """

    def __init__(
        self,
        redis: Redis,
        ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS,
        key_prefix: str = "lock:",
    ):
        self.redis = redis
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix

    def lock_key(self, digest: str) -> str:
        """Get the Redis key guarding a fingerprint."""
        return f"{self.key_prefix}{digest}"

    async def acquire(self, key: str, owner: str, ttl: Optional[int] = None) -> bool:
        """
        Try to take the lock.

        Uses SET NX EX so exactly one of several racing callers succeeds.

        Args:
            key: Lock key
            owner: Identifier of the acquiring request
            ttl: Expiry in seconds (defaults to the coordinator TTL)

        Returns:
            True if the lock was acquired, False if another owner holds it

        Raises:
            LockStoreUnavailable: If Redis cannot be reached
        """
        try:
            acquired = await self.redis.set(key, owner, nx=True, ex=ttl or self.ttl_seconds)
        except RedisError as e:
            raise LockStoreUnavailable(
                "Lock store unavailable; cannot verify request uniqueness",
                {"reason": str(e)},
            ) from e
        return bool(acquired)

    async def release(self, key: str, owner: str) -> bool:
        """
        Release the lock if `owner` still holds it.

        Idempotent: releasing an expired, foreign or never-acquired lock
        is a no-op.

        Returns:
            True if a key was deleted

        Raises:
            LockStoreUnavailable: If Redis cannot be reached
        """
        try:
            deleted = await self.redis.eval(RELEASE_SCRIPT, 1, key, owner)
        except RedisError as e:
            raise LockStoreUnavailable(
                "Lock store unavailable during release",
                {"reason": str(e)},
            ) from e

        if not deleted:
            logger.debug(f"Lock {key[:20]}... not held by {owner}; nothing released")
        return bool(deleted)
