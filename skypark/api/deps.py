# skypark/api/deps.py
"""
Dependencias FastAPI: acceso a los servicios colgados de app.state y
autenticación por cabecera `Authorization: Bearer <token>`.
"""
from dataclasses import dataclass

from fastapi import Depends, Header, Request

from skypark.core.errors import (
    AuthRequired,
    InsufficientPermissions,
    InvalidTokenFormat,
    TokenError,
)
from skypark.core.tokens import TokenClaims, TokenKind, TokenManager
from skypark.db.users import UserStore
from skypark.services.auth import AuthService


@dataclass
class CurrentUser:
    user_id: str
    phone: str
    role: str
    claims: TokenClaims


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_token_manager(request: Request) -> TokenManager:
    return request.app.state.auth_service.tokens


def get_user_store(request: Request) -> UserStore:
    return request.app.state.auth_service.users


def _bearer_token(authorization: str) -> str | None:
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


def _current_user(claims: TokenClaims) -> CurrentUser:
    return CurrentUser(user_id=claims.user_id, phone=claims.phone, role=claims.role, claims=claims)


def auth_required(
    authorization: str | None = Header(None),
    tokens: TokenManager = Depends(get_token_manager),
) -> CurrentUser:
    if not authorization:
        raise AuthRequired()
    token = _bearer_token(authorization)
    if token is None:
        raise InvalidTokenFormat()
    claims = tokens.validate_token(token, expected_type=TokenKind.ACCESS)
    return _current_user(claims)


def optional_auth(
    authorization: str | None = Header(None),
    tokens: TokenManager = Depends(get_token_manager),
) -> CurrentUser | None:
    """Rutas públicas personalizables: un token ausente o inválido se ignora."""
    if not authorization:
        return None
    token = _bearer_token(authorization)
    if token is None:
        return None
    try:
        claims = tokens.validate_token(token, expected_type=TokenKind.ACCESS)
    except TokenError:
        return None
    return _current_user(claims)


def require_role(*allowed_roles: str):
    def _check(user: CurrentUser = Depends(auth_required)) -> CurrentUser:
        if user.role not in allowed_roles:
            raise InsufficientPermissions(required_roles=list(allowed_roles), user_role=user.role)
        return user

    return _check


admin_only = require_role("admin", "super_admin")
