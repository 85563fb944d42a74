# healthcare_portal/schemas/shared.py
from datetime import datetime, date
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from healthcare_portal.config.constants import Gender, Role


class ApiResponse(BaseModel):
    success: bool
    message: str


def check_password_strength(value: str) -> str:
    checks = (
        any(c.islower() for c in value),
        any(c.isupper() for c in value),
        any(c.isdigit() for c in value),
        any(not c.isalnum() for c in value),
    )
    if not all(checks):
        raise ValueError(
            "Password must contain an uppercase letter, a lowercase letter, a digit and a special character"
        )
    return value


Password = Annotated[str, Field(min_length=8, max_length=128)]
PhoneNumber = Annotated[str, Field(pattern=r"^\+?[0-9. ()-]{7,25}$")]


class PatientProfileIn(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None

    @field_validator("date_of_birth")
    @classmethod
    def _dob_in_past(cls, value):
        if value is not None and value >= date.today():
            raise ValueError("Date of birth must be in the past")
        return value


class DoctorProfileIn(BaseModel):
    specialization: Optional[Annotated[str, Field(max_length=100)]] = None
    license_number: Optional[Annotated[str, Field(max_length=50)]] = None
    experience_years: Optional[Annotated[int, Field(ge=0)]] = None
    department_id: Optional[int] = None


class PatientProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[str] = None


class DoctorProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    specialization: Optional[str] = None
    license_number: Optional[str] = None
    experience_years: Optional[int] = None
    department_id: Optional[int] = None
    department_name: Optional[str] = None


class UserOut(BaseModel):
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    role: Role
    created_at: datetime
    patient_profile: Optional[PatientProfileOut] = None
    doctor_profile: Optional[DoctorProfileOut] = None

    @classmethod
    def from_model(cls, user) -> "UserOut":
        doctor_profile = None
        if user.doctor_profile is not None:
            profile = user.doctor_profile
            doctor_profile = DoctorProfileOut(
                specialization=profile.specialization,
                license_number=profile.license_number,
                experience_years=profile.experience_years,
                department_id=profile.department_id,
                department_name=profile.department.name if profile.department else None,
            )
        patient_profile = (
            PatientProfileOut.model_validate(user.patient_profile)
            if user.patient_profile is not None
            else None
        )
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            phone_number=user.phone_number,
            role=Role(user.role),
            created_at=user.created_at,
            patient_profile=patient_profile,
            doctor_profile=doctor_profile,
        )


def doctor_details(doctor) -> dict:
    """Name / department / specialization fields shared by several response models."""
    profile = getattr(doctor, "doctor_profile", None)
    return {
        "doctor_name": doctor.full_name,
        "doctor_email": doctor.email,
        "department_name": profile.department.name if profile and profile.department else None,
        "doctor_specialization": profile.specialization if profile else None,
    }
