"""Per-project version lock using Redis.

Version numbers are allocated by reading the project's current maximum and
incrementing it. This module serialises that read-then-write across
processes with a ``SET NX`` lock that expires on its own if the holder dies.
"""

import asyncio
import time
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as redis
import structlog

from sitegen.core.config import get_settings
from sitegen.core.exceptions import VersionLockTimeoutError

logger = structlog.get_logger(__name__)


class VersionLock:
    """Manages distributed per-project version locks using Redis."""

    LOCK_PREFIX = "sitegen:version-lock:"
    POLL_INTERVAL = 0.05

    def __init__(self, redis_client: redis.Redis, ttl: int | None = None, wait_timeout: float | None = None):
        settings = get_settings()
        self.redis = redis_client
        self.ttl = ttl or settings.version_lock_ttl_seconds
        self.wait_timeout = wait_timeout if wait_timeout is not None else settings.version_lock_wait_seconds

    def _lock_key(self, project_id: str) -> str:
        return f"{self.LOCK_PREFIX}{project_id}"

    async def acquire(self, project_id: str, owner: str) -> bool:
        """Attempt to acquire the lock once.

        Returns:
            True if acquired (or already held by ``owner``), False otherwise
        """
        key = self._lock_key(project_id)
        result = await self.redis.set(key, owner, nx=True, ex=self.ttl)
        if result:
            return True

        current = await self.redis.get(key)
        if current == owner:
            await self.redis.expire(key, self.ttl)
            return True

        return False

    async def release(self, project_id: str, owner: str) -> bool:
        """Release the lock if ``owner`` still holds it."""
        key = self._lock_key(project_id)
        current = await self.redis.get(key)
        if current == owner:
            await self.redis.delete(key)
            return True
        return False

    async def is_locked(self, project_id: str) -> bool:
        return await self.redis.exists(self._lock_key(project_id)) > 0

    @asynccontextmanager
    async def lock(self, project_id: str) -> AsyncGenerator[str, None]:
        """Hold the version lock for ``project_id`` for the duration of the block.

        Waits up to ``wait_timeout`` seconds for a competing holder to finish.

        Raises:
            VersionLockTimeoutError: If the lock could not be acquired in time

        Example:
            async with version_lock.lock(project_id):
                number = await allocate_next_version_number(...)
        """
        owner = str(uuid.uuid4())
        deadline = time.monotonic() + self.wait_timeout
        acquired = await self.acquire(project_id, owner)
        while not acquired:
            if time.monotonic() >= deadline:
                logger.warning("version_lock_timeout", project_id=project_id, waited_seconds=self.wait_timeout)
                raise VersionLockTimeoutError(project_id, int(self.wait_timeout))
            await asyncio.sleep(self.POLL_INTERVAL)
            acquired = await self.acquire(project_id, owner)

        try:
            yield owner
        finally:
            await self.release(project_id, owner)
