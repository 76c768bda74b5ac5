# skypark/db/models.py
import uuid
from datetime import date, datetime, timezone
from enum import Enum

from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, Date, DateTime, Uuid


class Base(DeclarativeBase):
    pass


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    PENDING = "pending"


class UserRole(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    MANAGER = "manager"
    ADMIN = "admin"


class LoyaltyTier(str, Enum):
    BEGINNER = "beginner"
    FRIEND = "friend"
    VIP = "vip"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    phone_number: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    first_name: Mapped[str] = mapped_column(String(100), default="")
    last_name: Mapped[str] = mapped_column(String(100), default="")
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[str] = mapped_column(String(16), default=UserStatus.ACTIVE.value)
    role: Mapped[str] = mapped_column(String(16), default=UserRole.CUSTOMER.value)
    is_phone_verified: Mapped[bool] = mapped_column(Boolean, default=False)

    loyalty_tier: Mapped[str] = mapped_column(String(16), default=LoyaltyTier.BEGINNER.value)
    loyalty_points: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value
