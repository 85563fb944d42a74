# healthcare_portal/schemas/user.py
from typing import Annotated, Optional

from pydantic import BaseModel, Field

from healthcare_portal.schemas.shared import DoctorProfileIn, PatientProfileIn, PhoneNumber


class UserProfileUpdate(BaseModel):
    """Partial update; only the fields that are sent are changed."""

    first_name: Optional[Annotated[str, Field(min_length=1, max_length=50)]] = None
    last_name: Optional[Annotated[str, Field(min_length=1, max_length=50)]] = None
    phone_number: Optional[PhoneNumber] = None
    patient_profile: Optional[PatientProfileIn] = None
    doctor_profile: Optional[DoctorProfileIn] = None
