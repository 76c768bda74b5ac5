# skypark/core/errors.py
"""
Jerarquía de errores del núcleo de autenticación.

Cada error lleva un `code` estable (los clientes dependen de él, no cambiar),
el status HTTP con el que se expone y detalles opcionales que se añaden
al bloque "error" de la respuesta.
"""
from __future__ import annotations


class AppError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None, **details):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, **self.details}


# --- Validación de entrada ---

class InvalidRequest(AppError):
    code = "INVALID_REQUEST"
    status_code = 400
    message = "Invalid request format"


# --- Envío de códigos SMS ---

class SmsSendError(AppError):
    code = "SMS_SEND_FAILED"
    status_code = 400
    message = "Failed to send SMS code"


class InvalidPhone(SmsSendError):
    message = "Invalid phone number format for Kyrgyzstan"

    def __init__(self, message: str | None = None, **details):
        super().__init__(message, reason="invalid_phone", **details)


class DeliveryFailed(SmsSendError):
    status_code = 502
    message = "SMS delivery failed"

    def __init__(self, message: str | None = None, **details):
        super().__init__(message, reason="delivery_failed", **details)


# --- Verificación de códigos ---

class VerificationError(AppError):
    """Código SMS rechazado. `reason` permite al cliente distinguir el caso."""

    code = "INVALID_SMS_CODE"
    status_code = 400
    reason = "invalid"

    def __init__(self, message: str | None = None, **details):
        super().__init__(message, reason=self.reason, **details)


class NoCodeFound(VerificationError):
    reason = "no_code"
    message = "No verification code found for this phone number"


class CodeExpired(VerificationError):
    reason = "expired"
    message = "Verification code has expired"


class AttemptsExceeded(VerificationError):
    reason = "attempts_exceeded"
    message = "Maximum verification attempts exceeded"


class CodeMismatch(VerificationError):
    reason = "mismatch"
    message = "Invalid verification code"


# --- Tokens ---

class TokenError(AppError):
    status_code = 401


class InvalidToken(TokenError):
    code = "INVALID_TOKEN"
    message = "Invalid token"


class ExpiredToken(TokenError):
    code = "TOKEN_EXPIRED"
    message = "Token has expired"


class TokenTypeMismatch(InvalidToken):
    code = "INVALID_TOKEN_TYPE"
    message = "Unexpected token type"


class TokenGenerationFailed(AppError):
    code = "TOKEN_GENERATION_FAILED"
    message = "Failed to generate tokens"


class TokenRefreshFailed(AppError):
    code = "TOKEN_REFRESH_FAILED"
    status_code = 401
    message = "Failed to refresh token"


# --- Autenticación por cabecera ---

class AuthRequired(AppError):
    code = "AUTH_REQUIRED"
    status_code = 401
    message = "Authorization header is required"


class InvalidTokenFormat(AppError):
    code = "INVALID_TOKEN_FORMAT"
    status_code = 401
    message = "Invalid authorization header format"


class Unauthorized(AppError):
    code = "UNAUTHORIZED"
    status_code = 401
    message = "User not authenticated"


class InsufficientPermissions(AppError):
    code = "INSUFFICIENT_PERMISSIONS"
    status_code = 403
    message = "Insufficient permissions for this action"


# --- Usuarios / almacenamiento ---

class AccountSuspended(AppError):
    code = "ACCOUNT_SUSPENDED"
    status_code = 403
    message = "Your account has been suspended"


class StoreFailure(AppError):
    code = "DATABASE_ERROR"
    message = "Database error occurred"


class UserCreationFailed(StoreFailure):
    code = "USER_CREATION_FAILED"
    message = "Failed to create user account"


class UpdateFailed(StoreFailure):
    code = "UPDATE_FAILED"
    message = "Failed to update profile"


class UserNotFound(AppError):
    code = "USER_NOT_FOUND"
    status_code = 404
    message = "User not found"
