# tests/test_auth_service.py
import asyncio
import uuid
from datetime import date, datetime, timezone

import pytest

from skypark.core.errors import (
    AccountSuspended,
    CodeMismatch,
    NoCodeFound,
    StoreFailure,
    TokenGenerationFailed,
    TokenRefreshFailed,
    UserCreationFailed,
)
from skypark.core.sms import VerificationCodeStore
from skypark.core.tokens import TokenKind, TokenManager
from skypark.db.models import User
from skypark.services.auth import AuthService, Profile, parse_birth_date

PHONE = "+996700123456"


class MemoryUserStore:
    def __init__(self):
        self.users: dict[str, User] = {}
        self.fail_lookup = False
        self.fail_create = False
        self.fail_login = False

    async def get_by_phone(self, phone):
        if self.fail_lookup:
            raise StoreFailure()
        return self.users.get(phone)

    async def get(self, user_id):
        return next((u for u in self.users.values() if str(u.id) == str(user_id)), None)

    async def create(self, phone, **profile):
        if self.fail_create:
            raise UserCreationFailed()
        user = User(
            id=uuid.uuid4(),
            phone_number=phone,
            first_name=profile.get("first_name", ""),
            last_name=profile.get("last_name", ""),
            email=profile.get("email"),
            date_of_birth=profile.get("date_of_birth"),
            role=profile["role"],
            status=profile["status"],
            is_phone_verified=profile["is_phone_verified"],
            loyalty_tier="beginner",
            loyalty_points=0,
            created_at=datetime.now(timezone.utc),
        )
        self.users[phone] = user
        return user

    async def record_login(self, user_id, when):
        if self.fail_login:
            raise StoreFailure()
        (await self.get(user_id)).last_login_at = when


@pytest.fixture
def users():
    return MemoryUserStore()


@pytest.fixture
def service(sender, clock, users):
    return AuthService(
        code_store=VerificationCodeStore(sender=sender, clock=clock),
        tokens=TokenManager("service-test-secret-0123456789abcdef", clock=clock),
        users=users,
    )


def _login(service, sender, profile=None):
    asyncio.run(service.send_code(PHONE))
    return asyncio.run(service.verify_and_login(PHONE, sender.last_code(PHONE), profile))


def test_send_code_reports_expiry_and_attempts(service, clock):
    sent = asyncio.run(service.send_code(PHONE))
    assert sent.phone == PHONE
    assert (sent.expires_at - clock.now).total_seconds() == 300
    assert sent.remaining_attempts == 3


def test_first_login_registers_customer(service, sender, users):
    profile = Profile(first_name="Aida", email="aida@example.kg", date_of_birth=date(2015, 3, 1))
    result = _login(service, sender, profile)

    assert result.registered is True
    user = users.users[PHONE]
    assert result.user is user
    assert user.role == "customer"
    assert user.status == "active"
    assert user.is_phone_verified is True
    assert user.first_name == "Aida"
    assert user.date_of_birth == date(2015, 3, 1)
    assert user.last_login_at is not None

    access = service.tokens.validate_token(result.tokens.access_token, expected_type=TokenKind.ACCESS)
    refresh = service.tokens.validate_token(result.tokens.refresh_token, expected_type=TokenKind.REFRESH)
    assert access.user_id == str(user.id) == refresh.user_id
    assert (access.expires_at - access.issued_at).total_seconds() == 15 * 60
    assert (refresh.expires_at - refresh.issued_at).days == 7


def test_second_login_reuses_user(service, sender, users):
    first = _login(service, sender)
    second = _login(service, sender)
    assert second.registered is False
    assert second.user.id == first.user.id
    assert len(users.users) == 1


def test_suspended_user_gets_no_tokens(service, sender, users):
    _login(service, sender)
    users.users[PHONE].status = "suspended"

    asyncio.run(service.send_code(PHONE))
    with pytest.raises(AccountSuspended):
        asyncio.run(service.verify_and_login(PHONE, sender.last_code(PHONE)))


@pytest.mark.parametrize("status", ["inactive", "pending"])
def test_non_active_statuses_refused(service, sender, users, status):
    _login(service, sender)
    users.users[PHONE].status = status
    with pytest.raises(AccountSuspended):
        _login(service, sender)


def test_verification_errors_propagate(service, sender, users):
    with pytest.raises(NoCodeFound):
        asyncio.run(service.verify_and_login(PHONE, "123456"))

    asyncio.run(service.send_code(PHONE))
    with pytest.raises(CodeMismatch):
        asyncio.run(service.verify_and_login(PHONE, "wrong"))
    assert users.users == {}


def test_lookup_failure_is_store_failure(service, sender, users):
    users.fail_lookup = True
    with pytest.raises(StoreFailure) as exc:
        _login(service, sender)
    assert exc.value.code == "DATABASE_ERROR"


def test_creation_failure(service, sender, users):
    users.fail_create = True
    with pytest.raises(UserCreationFailed) as exc:
        _login(service, sender)
    assert exc.value.code == "USER_CREATION_FAILED"


class BrokenTokenManager(TokenManager):
    def issue_pair(self, user_id, phone, role):
        raise RuntimeError("signing backend unavailable")


def test_token_generation_failure(sender, clock, users):
    service = AuthService(
        code_store=VerificationCodeStore(sender=sender, clock=clock),
        tokens=BrokenTokenManager("service-test-secret-0123456789abcdef", clock=clock),
        users=users,
    )
    with pytest.raises(TokenGenerationFailed) as exc:
        _login(service, sender)
    assert exc.value.code == "TOKEN_GENERATION_FAILED"
    assert exc.value.status_code == 500
    # sin tokens no se registra el acceso
    assert users.users[PHONE].last_login_at is None


def test_last_login_failure_does_not_block_login(service, sender, users):
    users.fail_login = True
    result = _login(service, sender)
    assert result.tokens.access_token
    assert result.user.last_login_at is None


def test_refresh_wraps_token_errors(service, sender):
    result = _login(service, sender)
    pair = service.refresh(result.tokens.refresh_token)
    assert service.tokens.validate_token(pair.access_token).user_id == str(result.user.id)

    with pytest.raises(TokenRefreshFailed) as exc:
        service.refresh(result.tokens.access_token)
    assert exc.value.details["reason"] == "INVALID_TOKEN"


@pytest.mark.parametrize("raw, expected", [
    ("2016-05-20", date(2016, 5, 20)),
    ("20/05/2016", None),
    ("", None),
    (None, None),
])
def test_parse_birth_date(raw, expected):
    assert parse_birth_date(raw) == expected
