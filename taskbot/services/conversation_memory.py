"""
Conversation memory - bounded, expiring per-user log of classifier turns
"""
import time
from typing import Callable, List

from pydantic import BaseModel

from taskbot.services.cache import CacheStore

HISTORY_KEY_PREFIX = "ai_chat_history:"


class ConversationTurn(BaseModel):
    role: str  # user | assistant
    content: str
    time: int


class ConversationMemory:
    """
    Ring of the most recent turns per user, stored newest-first in the cache.

    The whole ring expires `ttl_seconds` after the latest append; reads do
    not renew it.
    """

    def __init__(
        self,
        cache: CacheStore,
        limit: int = 3,
        ttl_seconds: int = 600,
        clock: Callable[[], float] = time.time,
    ):
        self.cache = cache
        self.limit = limit
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    @staticmethod
    def key(user_id) -> str:
        return f"{HISTORY_KEY_PREFIX}{user_id}"

    async def append(self, user_id, role: str, text: str) -> None:
        key = self.key(user_id)
        turn = ConversationTurn(role=role, content=text, time=int(self._clock()))
        await self.cache.push_front(key, turn.model_dump())
        await self.cache.trim(key, self.limit)
        await self.cache.expire(key, self.ttl_seconds)

    async def read(self, user_id) -> List[ConversationTurn]:
        """Turns in chronological order (oldest first)"""
        rows = await self.cache.range(self.key(user_id), self.limit)
        turns = []
        for row in rows:
            if isinstance(row, dict):
                try:
                    turns.append(ConversationTurn(**row))
                except (TypeError, ValueError):
                    continue
        turns.reverse()
        return turns

    async def clear(self, user_id) -> None:
        await self.cache.delete(self.key(user_id))
