"""
Redis-based per-zone lock.

Used by the orchestrator to serialise group formation inside one zone, so
that concurrent arrivals at the same airport do not race each other for
the same waiting requests.  The lock is an optimisation on top of the
conditional claims in the matcher, which stay correct without it.

Acquisition polls SET NX EX for at most ``wait_seconds``; a caller that
still cannot get the lock groups on the claims alone.  Release is an atomic
check-and-delete in Lua, so an expired holder cannot free someone else's
lock.
"""

from __future__ import annotations

import asyncio
import uuid

import redis.asyncio as aioredis

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class DistributedLock:
    def __init__(
        self,
        client: aioredis.Redis,
        key: str,
        ttl_seconds: int = 10,
        wait_seconds: float = 0.0,
        poll_interval: float = 0.05,
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.wait = wait_seconds
        self.poll_interval = poll_interval
        self.token = str(uuid.uuid4())

    async def acquire(self) -> bool:
        """Try to acquire, polling for up to ``wait`` seconds. Returns True on success."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait
        while True:
            if await self.redis.set(self.key, self.token, nx=True, ex=self.ttl):
                return True
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(self.poll_interval)

    async def release(self) -> bool:
        """Release only if we still own the lock. Returns True if deleted."""
        return bool(await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token))


class ZoneLocks:
    """Hands out one fresh lock object per grouping attempt."""

    def __init__(
        self, client: aioredis.Redis, ttl_seconds: int = 10, wait_seconds: float = 0.0
    ):
        self.client = client
        self.ttl = ttl_seconds
        self.wait = wait_seconds

    def for_zone(self, zone_code: str) -> DistributedLock:
        return DistributedLock(
            self.client, f"grouping:{zone_code}", self.ttl, wait_seconds=self.wait
        )


def create_redis(url: str) -> aioredis.Redis:
    """Redis client with its own connection pool."""
    return aioredis.Redis.from_url(url, decode_responses=True)
