# skypark/api/auth.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field

from skypark.api.deps import CurrentUser, get_auth_service, optional_auth
from skypark.api.responses import ok
from skypark.api.user import user_summary
from skypark.core.errors import VerificationError
from skypark.services.auth import AuthService, Profile, parse_birth_date

router = APIRouter()


class SendSmsInput(BaseModel):
    phone: str = Field(min_length=1, max_length=20)


class VerifyLoginInput(BaseModel):
    phone: str = Field(min_length=1, max_length=20)
    code: str = Field(min_length=1, max_length=12)
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    email: EmailStr | None = None
    date_of_birth: str | None = None  # YYYY-MM-DD


class RefreshInput(BaseModel):
    refresh_token: str = Field(min_length=1)


@router.post("/send-sms")
async def send_sms(body: SendSmsInput, auth: AuthService = Depends(get_auth_service)):
    sent = await auth.send_code(body.phone)
    return ok(
        {
            "phone": sent.phone,
            "expires_at": sent.expires_at.isoformat(),
            "remaining_attempts": sent.remaining_attempts,
        },
        message="SMS verification code sent successfully",
    )


@router.post("/verify-login")
async def verify_login(body: VerifyLoginInput, auth: AuthService = Depends(get_auth_service)):
    profile = Profile(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        date_of_birth=parse_birth_date(body.date_of_birth),
    )
    try:
        result = await auth.verify_and_login(body.phone, body.code, profile)
    except VerificationError as e:
        e.details.setdefault("remaining_attempts", auth.code_store.remaining_attempts(body.phone))
        raise

    return ok(
        {"user": user_summary(result.user), "tokens": result.tokens.as_dict()},
        message="Authentication successful",
    )


@router.post("/refresh")
async def refresh(body: RefreshInput, auth: AuthService = Depends(get_auth_service)):
    tokens = auth.refresh(body.refresh_token)
    return ok(tokens.as_dict(), message="Token refreshed successfully")


@router.get("/whoami")
async def whoami(current: CurrentUser | None = Depends(optional_auth)):
    if current is None:
        return ok({"authenticated": False})
    return ok({
        "authenticated": True,
        "user_id": current.user_id,
        "phone": current.phone,
        "role": current.role,
        "expires_at": current.claims.expires_at.isoformat(),
    })
