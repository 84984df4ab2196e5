from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Protocol

from pydantic import BaseModel
from redis import Redis

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[Any]]


class CacheEntry(BaseModel):
    key: str
    payload: Any
    timestamp: float


class CacheBackend(Protocol):
    def get(self, key: str) -> CacheEntry | None: ...

    def set(self, entry: CacheEntry, ttl_ms: int) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryCacheBackend:
    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def set(self, entry: CacheEntry, ttl_ms: int) -> None:
        self._entries[entry.key] = entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class RedisCacheBackend:
    """Shares provider responses between processes.

    Redis being unreachable is treated as a cache miss.
    """

    def __init__(self, client: Redis, prefix: str = "liquiditydesk:cache:") -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> RedisCacheBackend:
        return cls(Redis.from_url(url))

    def get(self, key: str) -> CacheEntry | None:
        try:
            raw = self._client.get(self._prefix + key)
        except Exception:
            logger.warning("Redis read failed for %s", key, exc_info=True)
            return None

        if not raw:
            return None

        try:
            return CacheEntry(**json.loads(raw))
        except (json.JSONDecodeError, TypeError, ValueError):
            return None

    def set(self, entry: CacheEntry, ttl_ms: int) -> None:
        ttl_seconds = max(1, -(-ttl_ms // 1000))
        try:
            self._client.setex(self._prefix + entry.key, ttl_seconds, entry.model_dump_json())
        except Exception:
            logger.warning("Redis write failed for %s", entry.key, exc_info=True)

    def delete(self, key: str) -> None:
        try:
            self._client.delete(self._prefix + key)
        except Exception:
            logger.warning("Redis delete failed for %s", key, exc_info=True)


class RequestCache:
    """Memoizes raw provider responses per key for a caller-supplied TTL."""

    def __init__(
        self,
        fetcher: Fetcher,
        backend: CacheBackend | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._fetcher = fetcher
        self._backend = backend or MemoryCacheBackend()
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def _fresh(self, key: str, ttl_ms: int) -> CacheEntry | None:
        entry = self._backend.get(key)
        if entry is not None and self._now_ms() - entry.timestamp < ttl_ms:
            return entry
        return None

    async def get_or_fetch(self, url: str, key: str, ttl_ms: int) -> Any:
        entry = self._fresh(key, ttl_ms)
        if entry is not None:
            logger.debug("Cache hit for %s", key)
            return entry.payload

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another caller may have refreshed the entry while we waited.
            entry = self._fresh(key, ttl_ms)
            if entry is not None:
                return entry.payload

            payload = await self._fetcher(url)
            self._backend.set(
                CacheEntry(key=key, payload=payload, timestamp=self._now_ms()), ttl_ms
            )
            return payload

    def invalidate(self, key: str) -> None:
        self._backend.delete(key)
