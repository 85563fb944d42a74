# healthcare_portal/schemas/auth.py
from __future__ import annotations
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from healthcare_portal.config.constants import Role
from healthcare_portal.schemas.shared import (
    DoctorProfileIn,
    PatientProfileIn,
    Password,
    PhoneNumber,
    UserOut,
    check_password_strength,
)


class SignUpRequest(BaseModel):
    email: Annotated[EmailStr, Field(max_length=100)]
    password: Password
    first_name: Annotated[str, Field(min_length=1, max_length=50)]
    last_name: Annotated[str, Field(min_length=1, max_length=50)]
    phone_number: Optional[PhoneNumber] = None
    role: Role

    patient_profile: Optional[PatientProfileIn] = None
    doctor_profile: Optional[DoctorProfileIn] = None

    @field_validator("password")
    @classmethod
    def _strong_password(cls, value: str) -> str:
        return check_password_strength(value)

    @model_validator(mode="after")
    def _profile_matches_role(self):
        if self.role != Role.PATIENT and self.patient_profile is not None:
            raise ValueError("patient_profile is only allowed for PATIENT accounts")
        if self.role != Role.DOCTOR and self.doctor_profile is not None:
            raise ValueError("doctor_profile is only allowed for DOCTOR accounts")
        return self


class SignInRequest(BaseModel):
    model_config = ConfigDict(extra='forbid')

    email: EmailStr
    password: Annotated[str, Field(min_length=1, max_length=128)]


class TokenType(Enum):
    bearer = 'bearer'


class AuthResponse(BaseModel):
    model_config = ConfigDict(extra='forbid')

    access_token: str
    refresh_token: str
    token_type: TokenType
    expires_in: int
    user: UserOut


class OtpRequest(BaseModel):
    email: EmailStr


class OtpVerificationRequest(BaseModel):
    email: EmailStr
    otp: Annotated[str, Field(pattern=r"^[0-9]{6}$")]


class PasswordResetRequest(OtpVerificationRequest):
    new_password: Password

    @field_validator("new_password")
    @classmethod
    def _strong_password(cls, value: str) -> str:
        return check_password_strength(value)


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None
