# healthcare_portal/db/models/otp.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index
from healthcare_portal.db.base import Base, utcnow


class OtpModel(Base):
    __tablename__ = "otps"

    id = Column(Integer, primary_key=True)
    email = Column(String(100), nullable=False)
    code = Column(String(6), nullable=False)
    type = Column(String(20), nullable=False)  # 'SIGNUP' or 'FORGOT_PASSWORD'
    expires_at = Column(DateTime, nullable=False)
    is_used = Column(Boolean, nullable=False, default=False)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_otp_email_type", "email", "type"),)

    def is_expired(self, now) -> bool:
        return now > self.expires_at

    def can_attempt(self, now, max_attempts: int) -> bool:
        return self.attempts < max_attempts and not self.is_expired(now) and not self.is_used


class OtpRequestModel(Base):
    """One row per accepted OTP request; the hourly rate limit counts these."""

    __tablename__ = "otp_requests"

    id = Column(Integer, primary_key=True)
    email = Column(String(100), nullable=False)
    type = Column(String(20), nullable=False)
    requested_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_otp_request_email_type", "email", "type", "requested_at"),)
