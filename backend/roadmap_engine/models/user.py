"""User model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from roadmap_engine.core.database import Base


class UserRole(str, Enum):
    USER_PENDING = "USER_PENDING"
    CONSULTANT_PENDING = "CONSULTANT_PENDING"
    CONSULTANT_APPROVED = "CONSULTANT_APPROVED"
    OPS_ADMIN = "OPS_ADMIN"
    SYSTEM_ADMIN = "SYSTEM_ADMIN"


ADMIN_ROLES = frozenset({UserRole.OPS_ADMIN.value, UserRole.SYSTEM_ADMIN.value})


class User(Base):
    """Platform account (consultants and operators)."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str | None] = mapped_column(String)
    email: Mapped[str | None] = mapped_column(String, unique=True)
    role: Mapped[str] = mapped_column(String, default=UserRole.USER_PENDING.value)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
