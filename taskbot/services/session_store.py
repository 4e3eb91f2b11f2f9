"""
Per-sender chat session state on top of the cache (``session:<id>``)
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError

from taskbot.services.cache import CacheStore

SESSION_PREFIX = "session:"


class SessionData(BaseModel):
    user_id: int
    phone_number: str
    command: str = ""
    step: int = 0
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class SessionStore:
    def __init__(self, cache: CacheStore, ttl_seconds: int):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    def _key(self, session_id: str) -> str:
        return SESSION_PREFIX + session_id

    async def set(self, session_id: str, session: SessionData) -> None:
        await self.cache.set(self._key(session_id), session.model_dump(mode="json"), self.ttl_seconds)

    async def get(self, session_id: str) -> Optional[SessionData]:
        raw = await self.cache.get(self._key(session_id))
        if not isinstance(raw, dict):
            return None
        try:
            return SessionData.model_validate(raw)
        except ValidationError:
            return None

    async def update(self, session_id: str, **changes) -> Optional[SessionData]:
        """Merge changes into a live session and restart its TTL"""
        session = await self.get(session_id)
        if session is None:
            return None
        session = session.model_copy(update={**changes, "updated_at": datetime.utcnow()})
        await self.set(session_id, session)
        return session

    async def delete(self, session_id: str) -> None:
        await self.cache.delete(self._key(session_id))

    async def touch(self, session_id: str, user_id: int, phone_number: str, command: str) -> SessionData:
        """Record the latest command of a sender, opening a session when none is live"""
        session = await self.get(session_id)
        if session is None:
            session = SessionData(user_id=user_id, phone_number=phone_number, command=command)
        else:
            session = session.model_copy(
                update={"command": command, "step": session.step + 1, "updated_at": datetime.utcnow()}
            )
        await self.set(session_id, session)
        return session
