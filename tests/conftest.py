# tests/conftest.py
import itertools
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# --- Asegurar que podemos importar 'skypark' desde la raíz del repo ---
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

TEST_SECRET = "test-secret-0123456789abcdef0123456789abcdef"


def _prepare_test_env() -> None:
    tmp = (ROOT / ".pytest_tmp").absolute()
    tmp.mkdir(exist_ok=True)

    # BD SQLite temporal para pruebas, limpia en cada sesión
    db_file = tmp / "test.sqlite3"
    if db_file.exists():
        db_file.unlink()
    os.environ["DB_URL"] = f"sqlite+aiosqlite:///{db_file.as_posix()}"

    os.environ["APP_ENV"] = "test"
    os.environ["JWT_SECRET"] = TEST_SECRET
    os.environ["SMS_SWEEP_INTERVAL_SECONDS"] = "0"


# Antes de que los módulos de test importen skypark.core.config
_prepare_test_env()


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class OutboxSender:
    """Captura los SMS en lugar de enviarlos."""

    def __init__(self):
        self.sent: list[tuple[str, str, datetime]] = []
        self.fail_with: Exception | None = None

    async def send(self, phone: str, code: str, expires_at: datetime) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((phone, code, expires_at))

    def last_code(self, phone: str) -> str:
        return next(code for p, code, _ in reversed(self.sent) if p == phone)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sender():
    return OutboxSender()


_phones = itertools.count(100000)


@pytest.fixture
def phone() -> str:
    """Un número válido distinto en cada test (la BD es compartida en la sesión)."""
    return f"+996700{next(_phones):06d}"


@pytest.fixture(scope="session")
def client():
    """
    Cliente de pruebas con entorno efímero:
    - BD sqlite en .pytest_tmp/test.sqlite3
    - JWT_SECRET de pruebas y sin barrido periódico de códigos
    """
    from skypark.main import app
    # Con 'with' forzamos lifespan: crea tablas y servicios en startup
    with TestClient(app) as c:
        yield c


@pytest.fixture
def outbox(client, sender):
    """Almacén de códigos limpio por test, con envío capturado."""
    from skypark.core.config import settings
    from skypark.core.sms import VerificationCodeStore

    service = client.app.state.auth_service
    previous = service.code_store
    service.code_store = VerificationCodeStore.from_settings(settings, sender=sender)
    yield sender
    service.code_store = previous
