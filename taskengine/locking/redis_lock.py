"""Per-task commit locks using Redis."""

import asyncio
import logging
import time
import uuid
from typing import Optional

import redis.asyncio as redis
from pydantic import BaseModel

from taskengine.app.config import settings

logger = logging.getLogger(__name__)

# Delete only if the caller still holds the lock
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class Lock(BaseModel):
    """Represents an acquired lock."""
    resource: str
    lock_id: str
    acquired_at: float


class LockTimeoutError(Exception):
    """Raised when lock acquisition times out."""
    pass


def task_resource(task_id: str) -> str:
    """Lock resource name for a task document."""
    return f"task:{task_id}"


class RedisLock:
    """Short-lived mutual exclusion around read-check-write commits."""

    def __init__(self, redis_client: redis.Redis, ttl: Optional[int] = None):
        """
        Initialize Redis lock manager.

        Args:
            redis_client: Redis async client
            ttl: Lock expiry in seconds (defaults to settings.lock_timeout)
        """
        self.redis = redis_client
        self.ttl = ttl or settings.lock_timeout

    async def acquire(
        self,
        resource: str,
        timeout: float = 5.0,
        retry_delay: float = 0.05,
        max_retry_delay: float = 1.0
    ) -> Lock:
        """
        Acquire lock using Redis SET NX EX.

        Retries with exponential backoff while another writer holds it.

        Args:
            resource: Resource to lock (e.g., "task:abc123")
            timeout: Seconds to keep trying
            retry_delay: Initial retry delay in seconds
            max_retry_delay: Maximum retry delay in seconds

        Returns:
            Lock object if successful

        Raises:
            LockTimeoutError: If lock cannot be acquired within timeout
        """
        lock_key = f"lock:{resource}"
        lock_id = str(uuid.uuid4())

        deadline = time.monotonic() + timeout
        current_retry_delay = retry_delay

        while True:
            acquired = await self.redis.set(lock_key, lock_id, ex=self.ttl, nx=True)
            if acquired:
                logger.debug(f"Acquired lock: {resource} (lock_id: {lock_id})")
                return Lock(resource=resource, lock_id=lock_id, acquired_at=time.time())

            if time.monotonic() >= deadline:
                break

            logger.debug(f"Lock {resource} busy, retrying in {current_retry_delay}s")
            await asyncio.sleep(current_retry_delay)
            current_retry_delay = min(current_retry_delay * 2, max_retry_delay)

        raise LockTimeoutError(f"Failed to acquire lock on {resource} within {timeout}s")

    async def release(self, lock: Lock) -> bool:
        """
        Release lock using Lua script to ensure atomicity.

        Args:
            lock: Lock object to release

        Returns:
            True if lock was released, False if it had expired or changed hands
        """
        result = await self.redis.eval(RELEASE_SCRIPT, 1, f"lock:{lock.resource}", lock.lock_id)

        if result:
            logger.debug(f"Released lock: {lock.resource}")
            return True

        logger.warning(
            f"Failed to release lock {lock.resource}: lock_id mismatch or already expired"
        )
        return False


class LockContext:
    """Async context manager for lock acquisition."""

    def __init__(self, lock_manager: RedisLock, resource: str, timeout: float = 5.0):
        """
        Initialize lock context.

        Args:
            lock_manager: RedisLock instance
            resource: Resource to lock
            timeout: Seconds to wait for the lock
        """
        self.lock_manager = lock_manager
        self.resource = resource
        self.timeout = timeout
        self.lock: Optional[Lock] = None

    async def __aenter__(self) -> Lock:
        """Acquire lock on entry."""
        self.lock = await self.lock_manager.acquire(self.resource, timeout=self.timeout)
        return self.lock

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Release lock on exit."""
        if self.lock:
            await self.lock_manager.release(self.lock)
