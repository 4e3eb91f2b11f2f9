"""
User model - bot users and their privilege level
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum as SQLEnum
from datetime import datetime
from enum import Enum
from taskbot.database import Base


class Role(str, Enum):
    SUPER_ADMIN = "SuperAdmin"
    ADMIN = "Admin"
    USER = "User"

    @classmethod
    def parse(cls, value: str) -> "Role":
        """Accept 'SuperAdmin', 'super_admin', 'superadmin', 'admin', ..."""
        normalized = (value or "").replace("_", "").replace("-", "").strip().lower()
        for role in cls:
            if role.value.lower() == normalized:
                return role
        raise ValueError(f"Unknown role: {value}")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False)
    phone_number = Column(String, nullable=True)
    whatsapp_number = Column(String, nullable=True, index=True)
    role = Column(SQLEnum(Role, native_enum=False), nullable=False, default=Role.USER)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)
