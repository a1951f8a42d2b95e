"""
Distributed Lock Manager

Redis-based distributed locking so periodic maintenance runs on one API
instance at a time.
"""

import uuid
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis

from sportclub.config import settings
from sportclub.monitoring.logging import get_logger

logger = get_logger(__name__)

# Delete the key only if this instance still owns it
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class DistributedLockManager:
    """
    Redis-based distributed lock manager.

    Features:
    - Unique lock holder ID per instance
    - Automatic lock expiration (TTL)
    - Safe release (only owner can release)
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        lock_ttl: int = 30,
        lock_prefix: str = "sportclub:lock:",
        redis_client: Optional[redis.Redis] = None,
    ):
        """
        Initialize lock manager.

        Args:
            redis_url: Redis connection URL
            lock_ttl: Default lock TTL in seconds
            lock_prefix: Prefix for lock keys
            redis_client: Pre-built client (skips connect)
        """
        self.redis_url = redis_url or str(settings.redis_url)
        self.lock_ttl = lock_ttl
        self.lock_prefix = lock_prefix
        self.instance_id = str(uuid.uuid4())
        self._redis: Optional[redis.Redis] = redis_client

    async def connect(self) -> None:
        """Connect to Redis."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, decode_responses=True)
        logger.info("lock_manager_connected", instance_id=self.instance_id)

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.close()
            self._redis = None
            logger.info("lock_manager_disconnected")

    def _make_key(self, name: str) -> str:
        return f"{self.lock_prefix}{name}"

    async def acquire(self, name: str, ttl: Optional[int] = None) -> bool:
        """
        Try once to acquire a lock.

        Returns:
            True if lock acquired, False if another instance holds it
        """
        if not self._redis:
            raise RuntimeError("Lock manager not connected")

        acquired = await self._redis.set(
            self._make_key(name),
            self.instance_id,
            nx=True,
            ex=ttl or self.lock_ttl,
        )
        if acquired:
            logger.debug("lock_acquired", lock=name)
        return bool(acquired)

    async def release(self, name: str) -> bool:
        """
        Release a lock held by this instance.

        Returns:
            True if released, False if not owned or already expired
        """
        if not self._redis:
            raise RuntimeError("Lock manager not connected")

        result = await self._redis.eval(_RELEASE_SCRIPT, 1, self._make_key(name), self.instance_id)
        if not result:
            logger.debug("lock_not_released", lock=name)
        return bool(result)

    @asynccontextmanager
    async def lock(self, name: str, ttl: Optional[int] = None):
        """
        Context manager yielding whether the lock was acquired.

        Usage:
            async with lock_manager.lock("purge") as acquired:
                if acquired:
                    ...
        """
        acquired = await self.acquire(name, ttl)
        try:
            yield acquired
        finally:
            if acquired:
                await self.release(name)
