from fastapi import APIRouter, Depends

from skypark.api.deps import admin_only, get_user_store
from skypark.api.responses import ok
from skypark.api.user import user_profile
from skypark.db.users import UserStore

router = APIRouter(dependencies=[Depends(admin_only)])


@router.get("/users")
async def list_users(users: UserStore = Depends(get_user_store)):
    rows = await users.list_users()
    return {**ok([user_profile(u) for u in rows]), "total": len(rows)}
