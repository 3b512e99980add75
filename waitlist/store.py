"""
Ephemeral key/value store for rate counters, OTP records and pending signups.

Two backends satisfy the same protocol:

* ``RedisStore``  – shared across workers, used in production.
* ``MemoryStore`` – in-process dict with lazy TTL expiry, used for local
  development (no ``REDIS_URL``) and in tests.

Every entry carries a TTL so abandoned state heals itself. Backend failures
surface as ``StorageUnavailable``; callers decide what a failure means.

Usage::

    store = RedisStore.from_url("redis://localhost:6379/0")
    count = await store.incr("ratelimit:join:1.2.3.4", ttl_seconds=60)
    ...
    await store.close()
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from waitlist.errors import StorageUnavailable

logger = logging.getLogger(__name__)


class EphemeralStore(Protocol):
    """Protocol that every ephemeral store backend must satisfy."""

    async def incr(self, key: str, ttl_seconds: int) -> int:
        """Atomically increment a counter; the TTL is only set when the key is created."""
        ...

    async def put_hash(self, key: str, mapping: dict[str, str], ttl_seconds: int) -> None:
        """Replace the whole hash stored at *key* and (re)set its TTL."""
        ...

    async def get_hash(self, key: str) -> dict[str, str]:
        """Return the hash at *key*, or an empty dict if absent or expired."""
        ...

    async def incr_hash_field(self, key: str, field: str, amount: int = 1) -> int | None:
        """Increment one hash field if the key is still live; ``None`` otherwise."""
        ...

    async def delete(self, key: str) -> bool:
        """Delete *key*. True only if a live key was actually removed by this call."""
        ...

    async def ping(self) -> bool:
        ...

    async def close(self) -> None:
        ...


# ══════════════════════════════════════════════════════════════════════════
#                              REDIS
# ══════════════════════════════════════════════════════════════════════════

# HINCRBY would silently resurrect an expired key without a TTL.
_INCR_IF_EXISTS = """
if redis.call('EXISTS', KEYS[1]) == 1 then
    return redis.call('HINCRBY', KEYS[1], ARGV[1], ARGV[2])
end
return false
"""


class RedisStore:
    """EphemeralStore backed by ``redis.asyncio``."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client
        self._incr_if_exists = client.register_script(_INCR_IF_EXISTS)

    @classmethod
    def from_url(cls, url: str) -> RedisStore:
        return cls(aioredis.from_url(url, decode_responses=True))

    async def incr(self, key: str, ttl_seconds: int) -> int:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.set(key, 0, ex=ttl_seconds, nx=True)
                pipe.incr(key)
                _, count = await pipe.execute()
        except RedisError as exc:
            raise StorageUnavailable(f"Redis INCR failed for {key}") from exc
        return int(count)

    async def put_hash(self, key: str, mapping: dict[str, str], ttl_seconds: int) -> None:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                pipe.hset(key, mapping=mapping)
                pipe.expire(key, ttl_seconds)
                await pipe.execute()
        except RedisError as exc:
            raise StorageUnavailable(f"Redis HSET failed for {key}") from exc

    async def get_hash(self, key: str) -> dict[str, str]:
        try:
            return await self._client.hgetall(key)
        except RedisError as exc:
            raise StorageUnavailable(f"Redis HGETALL failed for {key}") from exc

    async def incr_hash_field(self, key: str, field: str, amount: int = 1) -> int | None:
        try:
            result = await self._incr_if_exists(keys=[key], args=[field, amount])
        except RedisError as exc:
            raise StorageUnavailable(f"Redis HINCRBY failed for {key}") from exc
        return None if result is None else int(result)

    async def delete(self, key: str) -> bool:
        try:
            return await self._client.delete(key) > 0
        except RedisError as exc:
            raise StorageUnavailable(f"Redis DEL failed for {key}") from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError:
            logger.warning("Redis ping failed", exc_info=True)
            return False

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Redis connection closed")


# ══════════════════════════════════════════════════════════════════════════
#                              IN-PROCESS
# ══════════════════════════════════════════════════════════════════════════


class MemoryStore:
    """
    In-process EphemeralStore.

    Entries are ``key -> (value, expires_at)`` and are purged lazily on
    access. None of the methods await, so each call is atomic with respect
    to other tasks on the same event loop.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[object, float]] = {}

    def _live(self, key: str) -> object | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def incr(self, key: str, ttl_seconds: int) -> int:
        current = self._live(key)
        if current is None:
            self._data[key] = (1, self._clock() + ttl_seconds)
            return 1
        count = int(current) + 1
        self._data[key] = (count, self._data[key][1])
        return count

    async def put_hash(self, key: str, mapping: dict[str, str], ttl_seconds: int) -> None:
        self._data[key] = (dict(mapping), self._clock() + ttl_seconds)

    async def get_hash(self, key: str) -> dict[str, str]:
        value = self._live(key)
        return dict(value) if isinstance(value, dict) else {}

    async def incr_hash_field(self, key: str, field: str, amount: int = 1) -> int | None:
        value = self._live(key)
        if not isinstance(value, dict):
            return None
        new_value = int(value.get(field, "0")) + amount
        value[field] = str(new_value)
        return new_value

    async def delete(self, key: str) -> bool:
        live = self._live(key) is not None
        self._data.pop(key, None)
        return live

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._data.clear()

    def ttl(self, key: str) -> float | None:
        """Seconds until *key* expires, or None if it is not live."""
        if self._live(key) is None:
            return None
        return self._data[key][1] - self._clock()
