# skypark/api/user.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr

from skypark.api.deps import CurrentUser, auth_required, get_user_store
from skypark.api.responses import ok
from skypark.core.errors import UserNotFound
from skypark.db.models import User
from skypark.db.users import UserStore
from skypark.services.auth import parse_birth_date

router = APIRouter()


def user_summary(u: User) -> dict:
    return {
        "id": str(u.id),
        "phone": u.phone_number,
        "first_name": u.first_name,
        "last_name": u.last_name,
        "email": u.email,
        "role": u.role,
        "loyalty_tier": u.loyalty_tier,
        "is_verified": u.is_phone_verified,
        "created_at": u.created_at.isoformat() if u.created_at else None,
    }


def user_profile(u: User) -> dict:
    return {
        **user_summary(u),
        "date_of_birth": u.date_of_birth.isoformat() if u.date_of_birth else None,
        "status": u.status,
        "loyalty_points": u.loyalty_points,
        "last_login_at": u.last_login_at.isoformat() if u.last_login_at else None,
        "updated_at": u.updated_at.isoformat() if u.updated_at else None,
    }


class ProfileUpdateInput(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    email: EmailStr | None = None
    date_of_birth: str | None = None


@router.get("/profile")
async def get_profile(
    current: CurrentUser = Depends(auth_required),
    users: UserStore = Depends(get_user_store),
):
    u = await users.get(current.user_id)
    if u is None:
        raise UserNotFound()
    return ok(user_profile(u))


@router.put("/profile")
async def update_profile(
    body: ProfileUpdateInput,
    current: CurrentUser = Depends(auth_required),
    users: UserStore = Depends(get_user_store),
):
    # Los campos vacíos no pisan los valores actuales
    changes = {k: v for k, v in body.model_dump(exclude={"date_of_birth"}).items() if v}
    dob = parse_birth_date(body.date_of_birth)
    if dob is not None:
        changes["date_of_birth"] = dob

    u = await users.update_profile(current.user_id, **changes)
    if u is None:
        raise UserNotFound()
    return ok(user_profile(u), message="Profile updated successfully")
