"""
Short-lived scratch data on top of the cache (``temp:<key>``)
"""
from typing import Any, Optional

from taskbot.services.cache import CacheStore

TEMP_PREFIX = "temp:"


class TempStore:
    def __init__(self, cache: CacheStore):
        self.cache = cache

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        await self.cache.set(TEMP_PREFIX + key, value, ttl)

    async def get(self, key: str) -> Any | None:
        return await self.cache.get(TEMP_PREFIX + key)

    async def delete(self, key: str) -> None:
        await self.cache.delete(TEMP_PREFIX + key)

    async def claim(self, key: str, ttl: int) -> bool:
        """Mark key as seen; False when it was already claimed"""
        return await self.cache.set_if_absent(TEMP_PREFIX + key, 1, ttl)
