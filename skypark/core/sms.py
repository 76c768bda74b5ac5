# skypark/core/sms.py
"""
Almacén en memoria de códigos de verificación SMS.

Un registro por teléfono. Los códigos son de un solo uso, caducan a los
`code_ttl` segundos y se purgan al superar `max_attempts` intentos.
Todas las operaciones de lectura-modificación-escritura se hacen bajo
un único lock, así que la instancia es segura entre peticiones concurrentes.
"""
from __future__ import annotations

import asyncio
import hmac
import logging
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from skypark.core.errors import (
    AttemptsExceeded,
    CodeExpired,
    CodeMismatch,
    DeliveryFailed,
    InvalidPhone,
    NoCodeFound,
)
from skypark.core.log import mask_phone
from skypark.core.phone import is_valid_regional_phone

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class VerificationCode:
    phone: str
    code: str
    expires_at: datetime
    created_at: datetime
    attempts: int = 0
    # Resultado del envío en curso: True si el SMS salió, False si falló
    delivery: asyncio.Future | None = field(default=None, repr=False, compare=False)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class SmsSender(Protocol):
    async def send(self, phone: str, code: str, expires_at: datetime) -> None:
        ...


class LoggingSmsSender:
    """Envío simulado: solo deja constancia en el log (desarrollo)."""

    def __init__(self, log_codes: bool = True):
        self.log_codes = log_codes

    async def send(self, phone: str, code: str, expires_at: datetime) -> None:
        logger.info(
            "SMS to %s: Your Sky Park verification code is: %s (expires %s)",
            mask_phone(phone),
            code if self.log_codes else "<redacted>",
            expires_at.strftime("%H:%M:%S"),
        )


class VerificationCodeStore:
    def __init__(
        self,
        sender: SmsSender,
        code_ttl: timedelta = timedelta(minutes=5),
        code_length: int = 6,
        max_attempts: int = 3,
        clock: Clock = utcnow,
    ):
        self.sender = sender
        self.code_ttl = code_ttl
        self.code_length = code_length
        self.max_attempts = max_attempts
        self.clock = clock
        self._codes: dict[str, VerificationCode] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, sender: SmsSender, clock: Clock = utcnow) -> "VerificationCodeStore":
        return cls(
            sender=sender,
            code_ttl=timedelta(seconds=settings.sms_code_ttl_seconds),
            code_length=settings.sms_code_length,
            max_attempts=settings.sms_max_attempts,
            clock=clock,
        )

    def generate_code(self) -> str:
        return "".join(secrets.choice("0123456789") for _ in range(self.code_length))

    async def send_code(self, phone: str) -> VerificationCode:
        """
        Devuelve el código activo del teléfono o crea (y envía) uno nuevo.

        Mientras exista un código vigente con intentos disponibles se
        devuelve tal cual: ni se regenera ni se amplía su caducidad, ni se
        reenvía. Así las peticiones repetidas no sirven para spamear.

        Si el código reutilizado aún se está enviando, se espera al envío:
        quien lo reutiliza recibe el mismo éxito o el mismo `DeliveryFailed`.
        """
        if not is_valid_regional_phone(phone):
            raise InvalidPhone()

        record, fresh = self._issue(phone, asyncio.get_running_loop())
        if not fresh:
            logger.debug("Reusing active code for %s", mask_phone(phone))
            pending = record.delivery
            if pending is not None and not pending.done():
                if not await asyncio.shield(pending):
                    raise DeliveryFailed()
            return record

        try:
            await self.sender.send(phone, record.code, record.expires_at)
        except Exception as exc:
            # Sin envío el código es inútil; se descarta para que el reintento genere otro
            self._discard_record(record)
            record.delivery.set_result(False)
            logger.warning("SMS delivery to %s failed: %s", mask_phone(phone), exc)
            raise DeliveryFailed() from exc
        except BaseException:
            # Cancelado a mitad de envío: no se sabe si el SMS salió
            self._discard_record(record)
            record.delivery.set_result(False)
            raise

        record.delivery.set_result(True)
        logger.info("Verification code issued for %s", mask_phone(phone))
        return record

    def _issue(self, phone: str, loop: asyncio.AbstractEventLoop) -> tuple[VerificationCode, bool]:
        now = self.clock()
        with self._lock:
            existing = self._codes.get(phone)
            if existing is not None:
                if not existing.is_expired(now) and existing.attempts < self.max_attempts:
                    return existing, False
                del self._codes[phone]

            record = VerificationCode(
                phone=phone,
                code=self.generate_code(),
                expires_at=now + self.code_ttl,
                created_at=now,
                delivery=loop.create_future(),
            )
            self._codes[phone] = record
            return record, True

    def verify_code(self, phone: str, candidate: str) -> bool:
        now = self.clock()
        with self._lock:
            record = self._codes.get(phone)
            if record is None:
                raise NoCodeFound()

            # La caducidad se comprueba antes de consumir intento
            if record.is_expired(now):
                del self._codes[phone]
                raise CodeExpired()

            record.attempts += 1
            if record.attempts > self.max_attempts:
                del self._codes[phone]
                logger.info("Attempts exceeded for %s", mask_phone(phone))
                raise AttemptsExceeded(remaining_attempts=0)

            if not hmac.compare_digest(record.code.encode(), str(candidate).encode()):
                raise CodeMismatch(remaining_attempts=self.max_attempts - record.attempts)

            del self._codes[phone]
            return True

    def remaining_attempts(self, phone: str) -> int:
        with self._lock:
            record = self._codes.get(phone)
            if record is None or record.is_expired(self.clock()):
                return self.max_attempts
            return self.max_attempts - record.attempts

    def sweep_expired(self) -> int:
        now = self.clock()
        with self._lock:
            expired = [phone for phone, rec in self._codes.items() if rec.is_expired(now)]
            for phone in expired:
                del self._codes[phone]
        if expired:
            logger.debug("Swept %d expired verification codes", len(expired))
        return len(expired)

    def discard(self, phone: str) -> None:
        with self._lock:
            self._codes.pop(phone, None)

    def _discard_record(self, record: VerificationCode) -> None:
        # Solo si sigue siendo el mismo registro (otro hilo pudo reemplazarlo)
        with self._lock:
            if self._codes.get(record.phone) is record:
                del self._codes[record.phone]

    def __len__(self) -> int:
        with self._lock:
            return len(self._codes)
