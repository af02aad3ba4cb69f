"""
Permission Cache
Injected cache for resolved permission sets, keyed on (user_id, scope_id).

Role and assignment writers invalidate synchronously before acknowledging the
mutation, so a check started after a write observes the new state. The TTL is
only an upper bound on staleness for writes made outside RbacService.

Each user has a generation counter that ``invalidate`` bumps. A reader takes
the generation before reading the store and passes it to ``set``; the write is
dropped if the generation moved in between, so a check that read the store
before a revoke cannot put the revoked grant back after the invalidation.
"""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import redis.asyncio as aioredis
import structlog

from pms_api.core.config import settings

logger = structlog.get_logger()

GLOBAL_SCOPE_KEY = "global"


def _scope_key(scope_id: Any) -> str:
    return GLOBAL_SCOPE_KEY if scope_id is None else str(scope_id)


class PermissionCache(ABC):
    @abstractmethod
    async def get(self, user_id: Any, scope_id: Any = None) -> Optional[frozenset[str]]:
        raise NotImplementedError

    @abstractmethod
    async def generation(self, user_id: Any) -> Optional[int]:
        """Current invalidation generation of the user; None when unknown"""
        raise NotImplementedError

    @abstractmethod
    async def set(
        self,
        user_id: Any,
        scope_id: Any,
        permissions: frozenset[str],
        generation: Optional[int] = None,
    ) -> bool:
        """
        Store a resolved set. With ``generation`` the write only happens while
        the user's generation still equals it. Returns whether it was stored.
        """
        raise NotImplementedError

    @abstractmethod
    async def invalidate(self, user_id: Any, scope_id: Any = None) -> None:
        """
        Bump the user's generation and drop cached entries.

        A project-scoped write drops that scope only. A global write
        (scope_id None) drops every scope of the user, since global grants are
        part of every project-scoped result.
        """
        raise NotImplementedError

    @abstractmethod
    async def clear(self) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class NullPermissionCache(PermissionCache):
    """Never caches; every check reads the store"""

    async def get(self, user_id: Any, scope_id: Any = None) -> Optional[frozenset[str]]:
        return None

    async def generation(self, user_id: Any) -> Optional[int]:
        return None

    async def set(
        self,
        user_id: Any,
        scope_id: Any,
        permissions: frozenset[str],
        generation: Optional[int] = None,
    ) -> bool:
        return False

    async def invalidate(self, user_id: Any, scope_id: Any = None) -> None:
        return None

    async def clear(self) -> None:
        return None


class InMemoryPermissionCache(PermissionCache):
    """Process-local TTL cache"""

    def __init__(self, ttl_seconds: int = 300, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[str, str], tuple[frozenset[str], float]] = {}
        self._generations: dict[str, int] = {}

    async def get(self, user_id: Any, scope_id: Any = None) -> Optional[frozenset[str]]:
        key = (str(user_id), _scope_key(scope_id))
        entry = self._entries.get(key)
        if entry is None:
            return None
        permissions, expires_at = entry
        if expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return permissions

    async def generation(self, user_id: Any) -> Optional[int]:
        return self._generations.get(str(user_id), 0)

    async def set(
        self,
        user_id: Any,
        scope_id: Any,
        permissions: frozenset[str],
        generation: Optional[int] = None,
    ) -> bool:
        user_key = str(user_id)
        if generation is not None and self._generations.get(user_key, 0) != generation:
            return False
        self._entries[(user_key, _scope_key(scope_id))] = (frozenset(permissions), self._clock() + self._ttl)
        return True

    async def invalidate(self, user_id: Any, scope_id: Any = None) -> None:
        user_key = str(user_id)
        self._generations[user_key] = self._generations.get(user_key, 0) + 1
        if scope_id is None:
            for key in [k for k in self._entries if k[0] == user_key]:
                del self._entries[key]
        else:
            self._entries.pop((user_key, _scope_key(scope_id)), None)

    async def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# Compare-and-set: write KEYS[2] only while the generation in KEYS[1] equals ARGV[1]
_SET_IF_GENERATION = """
if (redis.call('GET', KEYS[1]) or '0') == ARGV[1] then
    redis.call('SET', KEYS[2], ARGV[2], 'EX', ARGV[3])
    return 1
end
return 0
"""


class RedisPermissionCache(PermissionCache):
    """Redis-backed cache; an unreachable Redis behaves as a permanent miss"""

    def __init__(self, url: str, ttl_seconds: int = 300, prefix: str = "perm"):
        self._url = url
        self._ttl = ttl_seconds
        self._prefix = prefix
        self._client: Optional[aioredis.Redis] = None
        self._available: bool = True

    def _key(self, user_id: Any, scope_id: Any) -> str:
        return f"{self._prefix}:{user_id}:{_scope_key(scope_id)}"

    def _generation_key(self, user_id: Any) -> str:
        # Outside the "{prefix}:" namespace so entry scans never delete it
        return f"{self._prefix}-gen:{user_id}"

    async def _get_client(self) -> Optional[aioredis.Redis]:
        """Lazy-initialize Redis connection"""
        if not self._available:
            return None
        if self._client is None:
            try:
                self._client = aioredis.from_url(
                    self._url,
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=3,
                    retry_on_timeout=True,
                )
                await self._client.ping()
                logger.info("Permission cache connected to Redis", url=self._url)
            except Exception as e:
                logger.warning("Redis unavailable, permission caching disabled", error=str(e))
                self._available = False
                self._client = None
                return None
        return self._client

    async def get(self, user_id: Any, scope_id: Any = None) -> Optional[frozenset[str]]:
        client = await self._get_client()
        if not client:
            return None
        try:
            raw = await client.get(self._key(user_id, scope_id))
            if raw is None:
                return None
            return frozenset(json.loads(raw))
        except Exception as e:
            logger.debug("Permission cache get failed", user_id=str(user_id), error=str(e))
            return None

    async def generation(self, user_id: Any) -> Optional[int]:
        client = await self._get_client()
        if not client:
            return None
        try:
            raw = await client.get(self._generation_key(user_id))
            return int(raw) if raw is not None else 0
        except Exception as e:
            logger.debug("Permission cache generation read failed", user_id=str(user_id), error=str(e))
            return None

    async def set(
        self,
        user_id: Any,
        scope_id: Any,
        permissions: frozenset[str],
        generation: Optional[int] = None,
    ) -> bool:
        client = await self._get_client()
        if not client:
            return False
        payload = json.dumps(sorted(permissions))
        try:
            if generation is None:
                await client.set(self._key(user_id, scope_id), payload, ex=self._ttl)
                return True
            stored = await client.eval(
                _SET_IF_GENERATION,
                2,
                self._generation_key(user_id),
                self._key(user_id, scope_id),
                str(generation),
                payload,
                str(self._ttl),
            )
            return bool(stored)
        except Exception as e:
            logger.debug("Permission cache set failed", user_id=str(user_id), error=str(e))
            return False

    async def invalidate(self, user_id: Any, scope_id: Any = None) -> None:
        # Failures here are not swallowed: a write must not be acknowledged
        # while a stale grant can still be served.
        client = await self._get_client()
        if not client:
            return None
        await client.incr(self._generation_key(user_id))
        if scope_id is not None:
            await client.delete(self._key(user_id, scope_id))
            return None
        keys = [key async for key in client.scan_iter(match=f"{self._prefix}:{user_id}:*", count=100)]
        if keys:
            await client.delete(*keys)

    async def clear(self) -> None:
        client = await self._get_client()
        if not client:
            return None
        keys = [key async for key in client.scan_iter(match=f"{self._prefix}:*", count=100)]
        if keys:
            await client.delete(*keys)

    async def close(self):
        """Close the Redis connection"""
        if self._client:
            await self._client.aclose()
            self._client = None


def build_permission_cache() -> PermissionCache:
    backend = settings.PERMISSION_CACHE_BACKEND
    if backend == "redis":
        return RedisPermissionCache(settings.REDIS_URL, ttl_seconds=settings.PERMISSION_CACHE_TTL_SECONDS)
    if backend == "memory":
        return InMemoryPermissionCache(ttl_seconds=settings.PERMISSION_CACHE_TTL_SECONDS)
    return NullPermissionCache()


# Singleton instance
permission_cache = build_permission_cache()
