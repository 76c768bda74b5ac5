# skypark/core/tokens.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable

import jwt
from jwt import ExpiredSignatureError, InvalidTokenError

from skypark.core.errors import ExpiredToken, InvalidToken, TokenTypeMismatch

logger = logging.getLogger(__name__)

_REQUIRED_CLAIMS = ["sub", "exp", "iat", "nbf", "iss"]


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    phone: str
    role: str
    kind: TokenKind
    issued_at: datetime
    expires_at: datetime
    not_before: datetime
    issuer: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"

    def as_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenManager:
    """
    Emisión y validación de tokens JWT firmados (HS256 por defecto).

    No guarda estado: la validez depende solo de la firma y de la
    caducidad embebida. Es segura entre hilos porque solo lee su config.
    """

    def __init__(
        self,
        secret: str,
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        issuer: str = "skypark-api",
        algorithm: str = "HS256",
        leeway: int = 0,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._secret = secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.issuer = issuer
        self.algorithm = algorithm
        self.leeway = leeway
        self.clock = clock

    @classmethod
    def from_settings(cls, settings) -> "TokenManager":
        return cls(
            secret=settings.jwt_secret,
            access_ttl=timedelta(seconds=settings.access_token_ttl_seconds),
            refresh_ttl=timedelta(seconds=settings.refresh_token_ttl_seconds),
            issuer=settings.jwt_issuer,
            algorithm=settings.jwt_alg,
            leeway=settings.jwt_leeway_seconds,
        )

    def issue_access_token(self, user_id, phone: str, role: str) -> str:
        return self._encode(user_id, phone, role, TokenKind.ACCESS, self.access_ttl)

    def issue_refresh_token(self, user_id, phone: str, role: str) -> str:
        return self._encode(user_id, phone, role, TokenKind.REFRESH, self.refresh_ttl)

    def issue_pair(self, user_id, phone: str, role: str) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access_token(user_id, phone, role),
            refresh_token=self.issue_refresh_token(user_id, phone, role),
        )

    def _encode(self, user_id, phone: str, role: str, kind: TokenKind, ttl: timedelta) -> str:
        now = self.clock()
        payload = {
            "sub": str(user_id),
            "user_id": str(user_id),
            "phone": phone,
            "role": role,
            "type": kind.value,
            "iss": self.issuer,
            "iat": int(now.timestamp()),
            "nbf": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def validate_token(self, token: str, expected_type: TokenKind | str | None = None) -> TokenClaims:
        """
        1) firma, algoritmo, emisor y claims obligatorios (PyJWT)
        2) `nbf` y segunda comprobación de `exp` contra nuestro reloj
        3) tipo de token, si se pide uno concreto

        `iat`/`nbf` no los comprueba PyJWT (usa la hora del sistema y
        rechazaría tokens emitidos con un reloj inyectado adelantado). El
        `exp` de PyJWT sí se mantiene, siempre contra la hora del sistema.
        """
        if expected_type is not None:
            try:
                expected_type = TokenKind(expected_type)
            except ValueError as e:
                raise TokenTypeMismatch(f"Unknown token type: {expected_type}") from e

        try:
            data = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                leeway=self.leeway,
                options={"require": _REQUIRED_CLAIMS, "verify_nbf": False, "verify_iat": False},
            )
        except ExpiredSignatureError as e:
            raise ExpiredToken() from e
        except InvalidTokenError as e:
            logger.debug("Token rejected: %s", e)
            raise InvalidToken() from e

        claims = self._to_claims(data)
        now = self.clock()

        if claims.not_before > now + timedelta(seconds=self.leeway):
            raise InvalidToken("Token not yet valid")

        # PyJWT tolera `leeway` segundos; aquí no
        if claims.expires_at <= now:
            raise ExpiredToken()

        if expected_type is not None and claims.kind != expected_type:
            raise TokenTypeMismatch(f"{expected_type.value.capitalize()} token required")

        return claims

    @staticmethod
    def _to_claims(data: dict) -> TokenClaims:
        try:
            return TokenClaims(
                user_id=str(data.get("user_id") or data["sub"]),
                phone=str(data["phone"]),
                role=str(data["role"]),
                kind=TokenKind(data["type"]),
                issued_at=datetime.fromtimestamp(int(data["iat"]), timezone.utc),
                expires_at=datetime.fromtimestamp(int(data["exp"]), timezone.utc),
                not_before=datetime.fromtimestamp(int(data["nbf"]), timezone.utc),
                issuer=str(data["iss"]),
            )
        except (KeyError, ValueError, TypeError) as e:
            raise InvalidToken("Malformed token claims") from e

    def refresh_tokens(self, refresh_token: str) -> TokenPair:
        # Rotación sin lista de revocación: el refresh anterior sigue valiendo hasta su exp
        claims = self.validate_token(refresh_token)
        if claims.kind != TokenKind.REFRESH:
            raise InvalidToken("Refresh token required")
        return self.issue_pair(claims.user_id, claims.phone, claims.role)
