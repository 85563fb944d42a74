from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from healthcare_portal.config.constants import Role
from healthcare_portal.core.middleware import get_current_user, get_db
from healthcare_portal.core.policy import Principal
from healthcare_portal.db.crud import user as users
from healthcare_portal.schemas.shared import ApiResponse, UserOut
from healthcare_portal.schemas.user import UserProfileUpdate

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=List[UserOut])
async def list_users_route(
    role: Optional[Role] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return [UserOut.from_model(u) for u in await users.list_users(db, current_user, role, skip, limit)]


@router.get("/doctors", response_model=List[UserOut])
async def list_doctors_route(
    department_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return [UserOut.from_model(u) for u in await users.list_doctors(db, department_id)]


@router.get("/{user_id}", response_model=UserOut)
async def get_user_route(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return UserOut.from_model(await users.view_user(db, current_user, user_id))


@router.put("/{user_id}", response_model=UserOut)
async def update_user_route(
    user_id: int,
    body: UserProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return UserOut.from_model(await users.update_profile(db, current_user, user_id, body))


@router.delete("/{user_id}", response_model=ApiResponse)
async def delete_user_route(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    await users.delete_user(db, current_user, user_id)
    return ApiResponse(success=True, message="User deleted successfully")
