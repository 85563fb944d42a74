# healthcare_portal/db/crud/otp.py
"""
One-time codes for signup and password reset.

At most one actionable code exists per (email, type): issuing a new one
deletes the previous rows first. Verification never raises on a wrong code;
it reports the outcome as a bool. Accepted requests are also logged in
``otp_requests``, which is what the hourly rate limit counts.
"""
import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from healthcare_portal.config.constants import OtpType
from healthcare_portal.config.settings import settings
from healthcare_portal.core.email import dispatch_otp_email
from healthcare_portal.core.exceptions import AlreadyExistsError, NotFoundError, RateLimitedError
from healthcare_portal.db.base import utcnow
from healthcare_portal.db.crud.user import get_user_by_email
from healthcare_portal.db.models import OtpModel, OtpRequestModel

logger = logging.getLogger(__name__)

RATE_LIMIT_WINDOW = timedelta(hours=1)


def generate_otp(length: Optional[int] = None) -> str:
    length = length or settings.otp_length
    return "".join(secrets.choice(string.digits) for _ in range(length))


async def can_request_otp(
    db: AsyncSession, email: str, otp_type: OtpType, now: Optional[datetime] = None
) -> bool:
    """True while fewer than ``otp_max_requests_per_hour`` requests fall in the trailing hour."""
    now = now or utcnow()
    query = select(func.count(OtpRequestModel.id)).where(
        OtpRequestModel.email == email,
        OtpRequestModel.type == otp_type.value,
        OtpRequestModel.requested_at > now - RATE_LIMIT_WINDOW,
    )
    recent = (await db.execute(query)).scalar_one()
    return recent < settings.otp_max_requests_per_hour


async def _issue(db: AsyncSession, email: str, otp_type: OtpType, now: Optional[datetime]) -> OtpModel:
    now = now or utcnow()
    if not await can_request_otp(db, email, otp_type, now=now):
        logger.warning(f"OTP rate limit hit for {email} ({otp_type.value})")
        raise RateLimitedError()

    await db.execute(
        delete(OtpModel).where(OtpModel.email == email, OtpModel.type == otp_type.value)
    )
    otp = OtpModel(
        email=email,
        code=generate_otp(),
        type=otp_type.value,
        expires_at=now + timedelta(minutes=settings.otp_expiry_minutes),
        is_used=False,
        attempts=0,
        created_at=now,
    )
    db.add(otp)
    db.add(OtpRequestModel(email=email, type=otp_type.value, requested_at=now))
    await db.commit()
    logger.info(f"Issued {otp_type.value} OTP for {email}, expires at {otp.expires_at}")

    # Delivery happens after the commit; a failed send leaves the stored code in place.
    dispatch_otp_email(email, otp.code, otp_type)
    return otp


async def send_signup_otp(db: AsyncSession, email: str, now: Optional[datetime] = None) -> OtpModel:
    if await get_user_by_email(db, email) is not None:
        raise AlreadyExistsError("Email already registered")
    return await _issue(db, email, OtpType.SIGNUP, now)


async def send_password_reset_otp(db: AsyncSession, email: str, now: Optional[datetime] = None) -> OtpModel:
    if await get_user_by_email(db, email) is None:
        raise NotFoundError(f"User not found with email: {email}")
    return await _issue(db, email, OtpType.FORGOT_PASSWORD, now)


async def _latest_actionable(
    db: AsyncSession, email: str, otp_type: OtpType, now: datetime
) -> Optional[OtpModel]:
    query = (
        select(OtpModel)
        .where(
            OtpModel.email == email,
            OtpModel.type == otp_type.value,
            OtpModel.is_used.is_(False),
            OtpModel.expires_at > now,
        )
        .order_by(OtpModel.created_at.desc(), OtpModel.id.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return (await db.execute(query)).scalar_one_or_none()


async def verify_otp(
    db: AsyncSession, email: str, code: str, otp_type: OtpType, now: Optional[datetime] = None
) -> bool:
    now = now or utcnow()
    otp = await _latest_actionable(db, email, otp_type, now)
    if otp is None:
        logger.info(f"No active {otp_type.value} OTP for {email}")
        return False

    if not otp.can_attempt(now, settings.otp_max_attempts):
        logger.info(f"{otp_type.value} OTP for {email} is exhausted")
        return False

    # bytes, since compare_digest rejects non-ASCII str
    if secrets.compare_digest(otp.code.encode(), code.encode()):
        otp.is_used = True
        await db.commit()
        logger.info(f"{otp_type.value} OTP verified for {email}")
        return True

    otp.attempts += 1
    await db.commit()
    logger.info(f"Wrong {otp_type.value} OTP for {email} (attempt {otp.attempts})")
    return False


async def verify_signup_otp(db: AsyncSession, email: str, code: str, now: Optional[datetime] = None) -> bool:
    return await verify_otp(db, email, code, OtpType.SIGNUP, now)


async def verify_password_reset_otp(
    db: AsyncSession, email: str, code: str, now: Optional[datetime] = None
) -> bool:
    return await verify_otp(db, email, code, OtpType.FORGOT_PASSWORD, now)
