"""Domain errors raised by the CRUD layer and mapped to HTTP responses in one place."""
import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PortalError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(PortalError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class AlreadyExistsError(PortalError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class TimeConflictError(PortalError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "The schedule conflicts with an existing one for the doctor."


class ScheduleAlreadyBookedError(PortalError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "This schedule is already booked."


class RateLimitedError(PortalError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many OTP requests. Please wait before requesting another."


class InvalidInputError(PortalError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class InvalidStatusTransitionError(InvalidInputError):
    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot change appointment status from {current} to {requested}")
        self.current = current
        self.requested = requested


class ForbiddenError(PortalError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not enough permissions"


class AuthenticationError(PortalError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"Unhandled portal error on {request.url.path}: {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
        headers=headers,
    )
