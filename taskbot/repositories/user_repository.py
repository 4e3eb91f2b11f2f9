"""
User repository
"""
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select

from taskbot.models.user import User
from taskbot.repositories.base import Repository


class UserRepository(Repository):
    model = User

    def _active(self):
        return select(User).where(User.deleted_at.is_(None))

    async def get(self, user_id: int) -> Optional[User]:
        return await self._first(self._active().where(User.id == user_id))

    async def get_by_username(self, username: str) -> Optional[User]:
        return await self._first(self._active().where(User.username == username))

    async def get_by_email(self, email: str) -> Optional[User]:
        return await self._first(self._active().where(User.email == email))

    async def is_taken(self, column, value: str, exclude_id: Optional[int] = None) -> bool:
        """Unique columns also cover soft-deleted rows"""
        query = select(User.id).where(column == value)
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        return await self._first(query) is not None

    async def username_taken(self, username: str, exclude_id: Optional[int] = None) -> bool:
        return await self.is_taken(User.username, username, exclude_id)

    async def email_taken(self, email: str, exclude_id: Optional[int] = None) -> bool:
        return await self.is_taken(User.email, email, exclude_id)

    async def get_by_whatsapp_number(self, *numbers: str) -> Optional[User]:
        """Match any of the given spellings against whatsapp or phone number"""
        return await self._first(
            self._active()
            .where(User.whatsapp_number.in_(numbers) | User.phone_number.in_(numbers))
            .order_by(User.id)
        )

    async def get_all(self) -> Sequence[User]:
        return await self._all(self._active().order_by(User.id))

    async def soft_delete(self, user: User) -> None:
        user.deleted_at = datetime.utcnow()
        user.is_active = False
        await self.save(user)
