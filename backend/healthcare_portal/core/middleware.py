import logging
from typing import Optional

from fastapi import Request, Depends

from .auth import decode_access_token, JWTError, TOKEN_TYPE_ACCESS
from .exceptions import AuthenticationError
from .policy import Principal
from healthcare_portal.config.constants import Role
from healthcare_portal.db.session import get_db_session

logger = logging.getLogger(__name__)

# Paths that never carry user context
PUBLIC_PATHS = [
    "/auth/signin",
    "/auth/signup",
    "/auth/refresh",
    "/auth/send-signup-otp",
    "/auth/verify-signup-otp",
    "/auth/forgot-password",
    "/auth/reset-password",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
]


def _principal_from_token(token: str) -> Optional[Principal]:
    try:
        token_data = decode_access_token(token)
    except JWTError as e:
        logger.debug(f"Rejected token: {e}")
        return None
    if token_data.get("type", TOKEN_TYPE_ACCESS) != TOKEN_TYPE_ACCESS:
        return None
    try:
        return Principal(user_id=int(token_data["sub"]), role=Role(token_data["role"]))
    except (KeyError, ValueError):
        logger.warning("Token is missing a valid subject or role claim")
        return None


async def verify_token_middleware(request: Request, call_next):
    """
    Check the session cookie (or bearer header) and attach the caller to request state.
    Unauthenticated requests pass through; protected routes reject them via get_current_user.
    """
    request.state.user = None

    if any(request.url.path.startswith(public_path) for public_path in PUBLIC_PATHS):
        return await call_next(request)

    token = request.cookies.get("session")
    if not token:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header.split(" ", 1)[1]

    if token:
        request.state.user = _principal_from_token(token)

    return await call_next(request)


# FastAPI dependency for protected routes
def get_current_user(request: Request) -> Principal:
    """Raises 401 if the request carries no valid access token."""
    user = getattr(request.state, "user", None)
    if not user:
        raise AuthenticationError("Not authenticated")
    return user


def get_optional_user(request: Request) -> Optional[Principal]:
    return getattr(request.state, "user", None)


# Get a database session dependency
async def get_db(request: Request):
    """Yield an async SQLAlchemy session (dependency)."""
    async for session in get_db_session(request):
        yield session
