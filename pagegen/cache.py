"""Page cache adapters.

Every adapter is best-effort: backend failures are logged and downgraded to
a miss (get) or a no-op (set) so a degraded cache never fails a request.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional, Protocol

from redis import asyncio as aioredis

from pagegen.config import Settings
from pagegen.errors import CacheUnavailable

log = logging.getLogger(__name__)


class PageCache(Protocol):
    @property
    def enabled(self) -> bool: ...

    async def connect(self) -> None: ...

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def close(self) -> None: ...


class NullPageCache:
    """Cache that never stores anything."""

    enabled = False

    async def connect(self) -> None:
        return None

    async def get(self, key: str) -> Optional[str]:
        return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        return None

    async def close(self) -> None:
        return None


class MemoryPageCache:
    """Process-lifetime dict cache; entries never expire, ttl is ignored."""

    enabled = True

    def __init__(self) -> None:
        self._store: Dict[str, str] = {}

    async def connect(self) -> None:
        return None

    async def get(self, key: str) -> Optional[str]:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def close(self) -> None:
        self._store.clear()

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


class RedisPageCache:
    """Remote cache on a Redis server.

    Stays disabled when host or password is missing, or when the initial
    PING fails; in that state get always misses and set does nothing.
    """

    def __init__(
        self,
        host: Optional[str],
        port: int = 6379,
        username: str = "default",
        password: Optional[str] = None,
        timeout: float = 5.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout
        self._client: Optional[aioredis.Redis] = None

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        if self._client is not None:
            return
        if not (self.host and self.password):
            log.info("cache: redis host/password not configured; caching disabled")
            return
        client = aioredis.Redis(
            host=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            decode_responses=True,
            socket_timeout=self.timeout,
            socket_connect_timeout=self.timeout,
        )
        try:
            await client.ping()
        except Exception as exc:
            log.warning("cache: redis connection to %s:%s failed: %s", self.host, self.port, exc)
            try:
                await client.aclose()
            except Exception:
                log.debug("cache: error closing failed redis client", exc_info=True)
            return
        self._client = client
        log.info("cache: redis connected at %s:%s", self.host, self.port)

    def _require_client(self) -> aioredis.Redis:
        if self._client is None:
            raise CacheUnavailable("redis cache is not connected")
        return self._client

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._require_client().get(key)
        except CacheUnavailable:
            return None
        except Exception as exc:
            log.warning("cache: redis get failed for %s: %s", key, exc)
            return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            client = self._require_client()
            if ttl_seconds > 0:
                await client.set(key, value, ex=ttl_seconds)
            else:
                await client.set(key, value)
        except CacheUnavailable:
            return
        except Exception as exc:
            log.warning("cache: redis set failed for %s: %s", key, exc)

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.aclose()
        except Exception as exc:
            log.warning("cache: error closing redis client: %s", exc)


def build_cache(settings: Settings) -> PageCache:
    if settings.cache_backend == "memory":
        return MemoryPageCache()
    if settings.cache_backend == "none":
        return NullPageCache()
    if not settings.redis_configured:
        log.info("cache: REDIS_HOST/REDIS_PASSWORD not set; caching disabled")
        return NullPageCache()
    return RedisPageCache(
        host=settings.redis_host,
        port=settings.redis_port,
        username=settings.redis_username,
        password=settings.redis_password,
        timeout=settings.redis_timeout,
    )
