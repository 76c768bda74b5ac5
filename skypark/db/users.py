# skypark/db/users.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from skypark.core.errors import StoreFailure, UpdateFailed, UserCreationFailed
from skypark.core.log import mask_phone
from skypark.db.models import LoyaltyTier, User, UserRole, UserStatus

logger = logging.getLogger(__name__)


class UserStore(Protocol):
    async def get_by_phone(self, phone: str) -> User | None: ...

    async def get(self, user_id) -> User | None: ...

    async def create(self, phone: str, **profile) -> User: ...

    async def record_login(self, user_id, when: datetime) -> None: ...

    async def update_profile(self, user_id, **changes) -> User | None: ...

    async def list_users(self) -> list[User]: ...


def _as_uuid(user_id) -> uuid.UUID | None:
    if isinstance(user_id, uuid.UUID):
        return user_id
    try:
        return uuid.UUID(str(user_id))
    except ValueError:
        return None


class SqlUserStore:
    """Usuarios sobre SQLAlchemy async. Una sesión por operación."""

    def __init__(self, session_factory: async_sessionmaker):
        self._sessions = session_factory

    async def get_by_phone(self, phone: str) -> User | None:
        try:
            async with self._sessions() as s:
                res = await s.execute(
                    select(User).where(User.phone_number == phone, User.deleted_at.is_(None))
                )
                return res.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("User lookup for %s failed: %s", mask_phone(phone), e)
            raise StoreFailure() from e

    async def get(self, user_id) -> User | None:
        uid = _as_uuid(user_id)
        if uid is None:
            return None
        try:
            async with self._sessions() as s:
                res = await s.execute(select(User).where(User.id == uid, User.deleted_at.is_(None)))
                return res.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("User lookup %s failed: %s", uid, e)
            raise StoreFailure() from e

    async def create(self, phone: str, **profile) -> User:
        user = User(
            phone_number=phone,
            first_name=profile.get("first_name") or "",
            last_name=profile.get("last_name") or "",
            email=profile.get("email") or None,
            date_of_birth=profile.get("date_of_birth"),
            role=profile.get("role", UserRole.CUSTOMER.value),
            status=profile.get("status", UserStatus.ACTIVE.value),
            is_phone_verified=profile.get("is_phone_verified", True),
            loyalty_tier=LoyaltyTier.BEGINNER.value,
        )
        try:
            async with self._sessions() as s:
                s.add(user)
                await s.commit()
                await s.refresh(user)
        except IntegrityError as e:
            logger.warning("User creation for %s rejected: %s", mask_phone(phone), e.orig)
            raise UserCreationFailed() from e
        except SQLAlchemyError as e:
            logger.error("User creation for %s failed: %s", mask_phone(phone), e)
            raise UserCreationFailed() from e
        logger.info("Registered new user %s (%s)", user.id, mask_phone(phone))
        return user

    async def record_login(self, user_id, when: datetime) -> None:
        uid = _as_uuid(user_id)
        if uid is None:
            return
        try:
            async with self._sessions() as s:
                user = await s.get(User, uid)
                if user is None:
                    return
                user.last_login_at = when
                await s.commit()
        except SQLAlchemyError as e:
            raise StoreFailure() from e

    async def update_profile(self, user_id, **changes) -> User | None:
        uid = _as_uuid(user_id)
        if uid is None:
            return None
        try:
            async with self._sessions() as s:
                res = await s.execute(select(User).where(User.id == uid, User.deleted_at.is_(None)))
                user = res.scalar_one_or_none()
                if user is None:
                    return None
                for field, value in changes.items():
                    setattr(user, field, value)
                await s.commit()
                await s.refresh(user)
                return user
        except SQLAlchemyError as e:
            logger.error("Profile update for %s failed: %s", uid, e)
            raise UpdateFailed() from e

    async def list_users(self) -> list[User]:
        try:
            async with self._sessions() as s:
                res = await s.execute(
                    select(User).where(User.deleted_at.is_(None)).order_by(User.created_at)
                )
                return list(res.scalars().all())
        except SQLAlchemyError as e:
            raise StoreFailure() from e
