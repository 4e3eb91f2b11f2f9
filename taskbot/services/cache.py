"""
Cache capability - key/value and list storage with TTL.

RedisCache is the production backend; InMemoryCache keeps the same
semantics in-process for development and tests.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from taskbot.errors import PersistenceFailure

logger = logging.getLogger(__name__)


class CacheStore(ABC):
    """Cache abstraction consumed by temp data, progress and conversation memory."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a JSON-serialisable value, optionally expiring after ttl seconds."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the stored value or None when missing/expired."""

    @abstractmethod
    async def set_if_absent(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store value only when key is missing; True when this call stored it."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key immediately."""

    @abstractmethod
    async def push_front(self, key: str, value: Any) -> None:
        """Prepend a value to the list stored at key."""

    @abstractmethod
    async def trim(self, key: str, length: int) -> None:
        """Keep only the first `length` entries of the list at key."""

    @abstractmethod
    async def range(self, key: str, length: int) -> list[Any]:
        """Return up to `length` entries from the front of the list at key."""

    @abstractmethod
    async def expire(self, key: str, ttl: int) -> None:
        """(Re)start the expiry timer of key."""

    async def close(self) -> None:
        return None


class RedisCache(CacheStore):
    """redis.asyncio backed cache"""

    def __init__(self, url: str, client: Optional[aioredis.Redis] = None):
        self.url = url
        self._client = client or aioredis.from_url(url, decode_responses=True)

    async def _call(self, operation: str, coro):
        try:
            return await coro
        except RedisError as e:
            logger.error(f"Redis {operation} failed: {e}")
            raise PersistenceFailure(f"Cache error during {operation}") from e

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        payload = json.dumps(value, default=str)
        await self._call("set", self._client.set(key, payload, ex=ttl))

    async def set_if_absent(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        payload = json.dumps(value, default=str)
        stored = await self._call("set", self._client.set(key, payload, ex=ttl, nx=True))
        return bool(stored)

    async def get(self, key: str) -> Any | None:
        raw = await self._call("get", self._client.get(key))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return raw

    async def delete(self, key: str) -> None:
        await self._call("delete", self._client.delete(key))

    async def push_front(self, key: str, value: Any) -> None:
        await self._call("lpush", self._client.lpush(key, json.dumps(value, default=str)))

    async def trim(self, key: str, length: int) -> None:
        await self._call("ltrim", self._client.ltrim(key, 0, length - 1))

    async def range(self, key: str, length: int) -> list[Any]:
        rows = await self._call("lrange", self._client.lrange(key, 0, length - 1))
        values = []
        for row in rows:
            try:
                values.append(json.loads(row))
            except (json.JSONDecodeError, TypeError):
                continue
        return values

    async def expire(self, key: str, ttl: int) -> None:
        await self._call("expire", self._client.expire(key, ttl))

    async def close(self) -> None:
        await self._client.aclose()


class InMemoryCache(CacheStore):
    """Process-local cache with Redis-like TTL semantics"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: dict[str, Any] = {}
        self._expires: dict[str, float] = {}
        self._lock = asyncio.Lock()

    def _alive(self, key: str) -> bool:
        deadline = self._expires.get(key)
        if deadline is not None and self._clock() >= deadline:
            self._data.pop(key, None)
            self._expires.pop(key, None)
        return key in self._data

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        async with self._lock:
            self._data[key] = json.loads(json.dumps(value, default=str))
            if ttl:
                self._expires[key] = self._clock() + ttl
            else:
                self._expires.pop(key, None)

    async def set_if_absent(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        async with self._lock:
            if self._alive(key):
                return False
            self._data[key] = json.loads(json.dumps(value, default=str))
            if ttl:
                self._expires[key] = self._clock() + ttl
            return True

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            if not self._alive(key):
                return None
            return self._data[key]

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)
            self._expires.pop(key, None)

    async def push_front(self, key: str, value: Any) -> None:
        async with self._lock:
            current = self._data[key] if self._alive(key) else []
            if not isinstance(current, list):
                raise PersistenceFailure(f"Cache key {key} does not hold a list")
            current.insert(0, json.loads(json.dumps(value, default=str)))
            self._data[key] = current

    async def trim(self, key: str, length: int) -> None:
        async with self._lock:
            if self._alive(key) and isinstance(self._data[key], list):
                self._data[key] = self._data[key][:length]

    async def range(self, key: str, length: int) -> list[Any]:
        async with self._lock:
            if not self._alive(key) or not isinstance(self._data[key], list):
                return []
            return list(self._data[key][:length])

    async def expire(self, key: str, ttl: int) -> None:
        async with self._lock:
            if self._alive(key):
                self._expires[key] = self._clock() + ttl


def build_cache(redis_url: str) -> CacheStore:
    if redis_url:
        logger.info("Using Redis cache")
        return RedisCache(redis_url)
    logger.info("REDIS_URL not set - using in-process cache")
    return InMemoryCache()
