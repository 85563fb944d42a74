from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from healthcare_portal.config.settings import env, settings
from healthcare_portal.core.exceptions import InvalidInputError
from healthcare_portal.core.middleware import get_current_user, get_db
from healthcare_portal.core.policy import Principal
from healthcare_portal.db.crud.otp import (
    send_password_reset_otp,
    send_signup_otp,
    verify_signup_otp,
)
from healthcare_portal.db.crud.user import view_user
from healthcare_portal.schemas.auth import (
    AuthResponse,
    OtpRequest,
    OtpVerificationRequest,
    PasswordResetRequest,
    RefreshRequest,
    SignInRequest,
    SignUpRequest,
)
from healthcare_portal.schemas.shared import ApiResponse, UserOut
from .services import create_user_by_admin, refresh_tokens, reset_password, sign_in, sign_up

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)

# determine secure flag
secure_cookie = env == "production"


def _set_session_cookies(response: Response, tokens: AuthResponse) -> None:
    response.set_cookie(
        key="session",
        value=tokens.access_token,
        httponly=True,
        secure=secure_cookie,
        samesite="lax",
        max_age=settings.access_token_expire_minutes * 60,
    )
    response.set_cookie(
        key="refresh",
        value=tokens.refresh_token,
        httponly=True,
        secure=secure_cookie,
        samesite="lax",
        max_age=settings.refresh_token_expire_days * 86400,
    )


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    user_data: SignUpRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    tokens = await sign_up(db, user_data)
    _set_session_cookies(response, tokens)
    return tokens


@router.post("/signin", response_model=AuthResponse)
async def signin(
    login_data: SignInRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    tokens = await sign_in(db, login_data)
    _set_session_cookies(response, tokens)
    return tokens


@router.post("/refresh", response_model=AuthResponse)
async def refresh(
    response: Response,
    body: Optional[RefreshRequest] = None,
    refresh_cookie: Optional[str] = Cookie(None, alias="refresh"),
    db: AsyncSession = Depends(get_db),
):
    # body wins over the cookie so non-browser clients can refresh too
    token = (body.refresh_token if body else None) or refresh_cookie
    tokens = await refresh_tokens(db, token)
    _set_session_cookies(response, tokens)
    return tokens


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response):
    response.delete_cookie(key="session")
    response.delete_cookie(key="refresh")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=UserOut)
async def me(
    current_user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await view_user(db, current_user, current_user.user_id)
    return UserOut.from_model(user)


@router.post("/admin/create-user", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def admin_create_user(
    user_data: SignUpRequest,
    current_user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await create_user_by_admin(db, current_user, user_data)


@router.post("/send-signup-otp", response_model=ApiResponse)
async def send_signup_otp_route(request: OtpRequest, db: AsyncSession = Depends(get_db)):
    await send_signup_otp(db, request.email)
    return ApiResponse(success=True, message="OTP sent to your email address")


@router.post("/verify-signup-otp", response_model=ApiResponse)
async def verify_signup_otp_route(request: OtpVerificationRequest, db: AsyncSession = Depends(get_db)):
    if not await verify_signup_otp(db, request.email, request.otp):
        raise InvalidInputError("Invalid or expired OTP")
    return ApiResponse(success=True, message="Email verified successfully")


@router.post("/forgot-password", response_model=ApiResponse)
async def forgot_password(request: OtpRequest, db: AsyncSession = Depends(get_db)):
    await send_password_reset_otp(db, request.email)
    return ApiResponse(success=True, message="Password reset OTP sent to your email address")


@router.post("/reset-password", response_model=ApiResponse)
async def reset_password_route(request: PasswordResetRequest, db: AsyncSession = Depends(get_db)):
    await reset_password(db, request)
    return ApiResponse(success=True, message="Password reset successfully")
