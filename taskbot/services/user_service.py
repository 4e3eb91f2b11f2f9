"""
User operations - registration, lookup and role management
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from taskbot.errors import InvalidArgument, NotFound
from taskbot.models.user import Role, User
from taskbot.repositories.base import unit_of_work
from taskbot.repositories.user_repository import UserRepository
from taskbot.services.whatsapp_client import normalize_phone

logger = logging.getLogger(__name__)

UPDATABLE_USER_FIELDS = {"username", "email", "phone", "role"}


def phone_variants(sender: str) -> List[str]:
    number = (sender or "").split("@", 1)[0].strip().lstrip("+")
    variants = [sender, number, normalize_phone(number)]
    if number.startswith("62"):
        variants.append("0" + number[2:])
    return list(dict.fromkeys(v for v in variants if v))


def parse_role(value: str) -> Role:
    try:
        return Role.parse(value)
    except ValueError:
        raise InvalidArgument(f"Invalid role: {value} (use SuperAdmin, Admin or User)")


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserRepository(db)

    async def create_user(
        self,
        username: str,
        email: str,
        phone: Optional[str],
        role: Role = Role.USER,
    ) -> User:
        if not username or not email:
            raise InvalidArgument("Username and email are required")
        await self._check_unique(username, email)

        user = User(
            username=username,
            email=email,
            phone_number=phone,
            whatsapp_number=phone,
            role=role,
            is_active=True,
        )
        async with unit_of_work(self.db):
            await self.users.add(user)
        logger.info(f"User created: {username} ({role.value})")
        return user

    async def _check_unique(
        self, username: Optional[str], email: Optional[str], exclude_id: Optional[int] = None
    ) -> None:
        if username is not None and await self.users.username_taken(username, exclude_id):
            raise InvalidArgument(f"Username already exists: {username}")
        if email is not None and await self.users.email_taken(email, exclude_id):
            raise InvalidArgument(f"Email already exists: {email}")

    async def get_user(self, user_id: int) -> User:
        user = await self.users.get(user_id)
        if not user:
            raise NotFound(f"User not found: {user_id}")
        return user

    async def get_by_username(self, username: str) -> Optional[User]:
        return await self.users.get_by_username(username)

    async def get_by_whatsapp_number(self, sender: str) -> Optional[User]:
        """Look up a sender id such as 628123@s.whatsapp.net, 628123 or 08123"""
        return await self.users.get_by_whatsapp_number(*phone_variants(sender))

    async def list_users(self) -> List[User]:
        return list(await self.users.get_all())

    async def resolve(self, token: str) -> User:
        """Numeric token -> id lookup, anything else -> username lookup"""
        user = None
        try:
            user = await self.users.get(int(token))
        except ValueError:
            user = await self.users.get_by_username(token)
        if not user:
            raise NotFound(f"user not found: {token}")
        return user

    async def update_user(self, user_id: int, changes: Dict[str, str]) -> User:
        user = await self.get_user(user_id)
        unknown = set(changes) - UPDATABLE_USER_FIELDS
        if unknown:
            raise InvalidArgument(f"Cannot update user field(s): {', '.join(sorted(unknown))}")
        await self._check_unique(changes.get("username"), changes.get("email"), exclude_id=user.id)

        async with unit_of_work(self.db):
            if "username" in changes:
                user.username = changes["username"]
            if "email" in changes:
                user.email = changes["email"]
            if "phone" in changes:
                user.phone_number = changes["phone"]
                user.whatsapp_number = changes["phone"]
            if "role" in changes:
                user.role = parse_role(changes["role"])
            await self.users.save(user)
        return user

    async def set_role(self, user_id: int, role: Role) -> User:
        user = await self.get_user(user_id)
        async with unit_of_work(self.db):
            user.role = role
            await self.users.save(user)
        logger.info(f"User {user.username} role set to {role.value}")
        return user

    async def delete_user(self, user_id: int) -> None:
        user = await self.get_user(user_id)
        async with unit_of_work(self.db):
            await self.users.soft_delete(user)

    async def ensure_default_admin(self, username: str, email: str, whatsapp: str) -> Optional[User]:
        if await self.users.username_taken(username):
            return None
        return await self.create_user(username, email, whatsapp or None, Role.SUPER_ADMIN)
