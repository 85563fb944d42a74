# healthcare_portal/routes/auth/services.py
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from healthcare_portal.config.constants import Role
from healthcare_portal.config.settings import settings
from healthcare_portal.core.auth import (
    JWTError,
    TOKEN_TYPE_REFRESH,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    verify_password,
)
from healthcare_portal.core.exceptions import AuthenticationError, InvalidInputError, NotFoundError
from healthcare_portal.core.policy import Action, Principal, authorize
from healthcare_portal.db.crud.otp import verify_password_reset_otp
from healthcare_portal.db.crud.user import create_user, get_user, get_user_by_email, set_password
from healthcare_portal.db.models import UserModel
from healthcare_portal.schemas.auth import AuthResponse, PasswordResetRequest, SignInRequest, SignUpRequest
from healthcare_portal.schemas.shared import UserOut

logger = logging.getLogger(__name__)


def create_tokens_for_user(user: UserModel) -> AuthResponse:
    access_token = create_access_token(
        {"sub": str(user.id), "role": user.role},
        timedelta(minutes=settings.access_token_expire_minutes),
    )
    return AuthResponse(
        access_token=access_token,
        refresh_token=create_refresh_token(user.id),
        token_type="bearer",
        expires_in=settings.access_token_expire_minutes * 60,
        user=UserOut.from_model(user),
    )


async def sign_up(db: AsyncSession, data: SignUpRequest) -> AuthResponse:
    if data.role != Role.PATIENT:
        raise InvalidInputError(
            f"{data.role.value.capitalize()} accounts can only be created by an administrator"
        )
    user = await create_user(db, data)
    return create_tokens_for_user(user)


async def create_user_by_admin(db: AsyncSession, actor: Principal, data: SignUpRequest) -> UserOut:
    authorize(actor, Action.USER_MANAGE)
    user = await create_user(db, data)
    logger.info(f"Admin id={actor.user_id} created {user.role} user id={user.id}")
    return UserOut.from_model(user)


async def sign_in(db: AsyncSession, data: SignInRequest) -> AuthResponse:
    user = await get_user_by_email(db, data.email)
    if user is None or not verify_password(data.password, user.password_hash):
        logger.info(f"Failed sign-in for {data.email}")
        raise AuthenticationError("Invalid credentials")
    return create_tokens_for_user(user)


async def refresh_tokens(db: AsyncSession, refresh_token: Optional[str]) -> AuthResponse:
    """Issue a new token pair from a valid refresh token."""
    if not refresh_token:
        raise AuthenticationError("Missing refresh token")
    try:
        payload = decode_access_token(refresh_token)
    except JWTError:
        raise AuthenticationError("Invalid refresh token")
    if payload.get("type") != TOKEN_TYPE_REFRESH:
        raise AuthenticationError("Invalid refresh token")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid refresh token")

    user = await get_user(db, user_id)
    if user is None:
        raise AuthenticationError("User not found")
    return create_tokens_for_user(user)


async def reset_password(db: AsyncSession, data: PasswordResetRequest) -> None:
    user = await get_user_by_email(db, data.email)
    if user is None:
        raise NotFoundError(f"User not found with email: {data.email}")
    if not await verify_password_reset_otp(db, data.email, data.otp):
        raise InvalidInputError("Invalid or expired OTP")
    await set_password(db, user, data.new_password)
