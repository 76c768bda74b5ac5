# skypark/services/auth.py
"""
Flujo de login por SMS:

    CodeRequested -> CodeVerified -> UserResolved -> TokensIssued

Registro implícito en el primer login: si el teléfono no existe se crea
el usuario con rol "customer". No depende de FastAPI.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from skypark.core.errors import (
    AccountSuspended,
    AppError,
    TokenGenerationFailed,
    TokenRefreshFailed,
    TokenError,
)
from skypark.core.log import mask_phone
from skypark.core.sms import VerificationCodeStore
from skypark.core.tokens import TokenManager, TokenPair
from skypark.db.models import User, UserRole, UserStatus
from skypark.db.users import UserStore

logger = logging.getLogger(__name__)


@dataclass
class SentCode:
    phone: str
    expires_at: datetime
    remaining_attempts: int


@dataclass
class Profile:
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    date_of_birth: date | None = None

    def as_fields(self) -> dict:
        return {k: v for k, v in vars(self).items() if v not in (None, "")}


@dataclass
class LoginResult:
    user: User
    tokens: TokenPair
    registered: bool = False


def parse_birth_date(value: str | None) -> date | None:
    """YYYY-MM-DD; cualquier otra cosa se ignora."""
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None


class AuthService:
    def __init__(self, code_store: VerificationCodeStore, tokens: TokenManager, users: UserStore):
        self.code_store = code_store
        self.tokens = tokens
        self.users = users

    async def send_code(self, phone: str) -> SentCode:
        record = await self.code_store.send_code(phone)
        return SentCode(
            phone=record.phone,
            expires_at=record.expires_at,
            remaining_attempts=self.code_store.remaining_attempts(phone),
        )

    async def verify_and_login(self, phone: str, code: str, profile: Profile | None = None) -> LoginResult:
        self.code_store.verify_code(phone, code)
        logger.debug("Code verified for %s", mask_phone(phone))

        user, registered = await self._resolve_user(phone, profile or Profile())
        logger.debug("User %s resolved for %s", user.id, mask_phone(phone))

        if user.status != UserStatus.ACTIVE.value:
            logger.info("Login refused for user %s with status %s", user.id, user.status)
            raise AccountSuspended()

        try:
            tokens = self.tokens.issue_pair(user.id, user.phone_number, user.role)
        except Exception as e:
            logger.exception("Token generation failed for user %s", user.id)
            raise TokenGenerationFailed() from e

        await self._record_login(user)
        logger.info("User %s logged in", user.id)
        return LoginResult(user=user, tokens=tokens, registered=registered)

    async def _resolve_user(self, phone: str, profile: Profile) -> tuple[User, bool]:
        user = await self.users.get_by_phone(phone)
        if user is not None:
            return user, False

        user = await self.users.create(
            phone,
            role=UserRole.CUSTOMER.value,
            status=UserStatus.ACTIVE.value,
            is_phone_verified=True,
            **profile.as_fields(),
        )
        return user, True

    async def _record_login(self, user: User) -> None:
        # Best effort: un fallo aquí no invalida el login
        now = self.tokens.clock()
        try:
            await self.users.record_login(user.id, now)
        except AppError as e:
            logger.warning("Could not record last login for user %s: %s", user.id, e)
            return
        user.last_login_at = now

    def refresh(self, refresh_token: str) -> TokenPair:
        try:
            return self.tokens.refresh_tokens(refresh_token)
        except TokenError as e:
            raise TokenRefreshFailed(reason=e.code) from e

