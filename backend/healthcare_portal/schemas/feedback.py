# healthcare_portal/schemas/feedback.py
from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, Field

from healthcare_portal.schemas.shared import doctor_details

Rating = Annotated[int, Field(ge=1, le=5)]


class FeedbackRequest(BaseModel):
    doctor_id: Optional[int] = None  # omit for general feedback
    rating: Rating
    comments: Optional[str] = None


class FeedbackOut(BaseModel):
    id: int
    patient_id: int
    patient_name: str
    patient_email: str
    doctor_id: Optional[int] = None
    doctor_name: Optional[str] = None
    doctor_email: Optional[str] = None
    rating: int
    comments: Optional[str] = None
    submitted_at: datetime
    department_name: Optional[str] = None
    doctor_specialization: Optional[str] = None

    @classmethod
    def from_model(cls, feedback) -> "FeedbackOut":
        doctor_fields = doctor_details(feedback.doctor) if feedback.doctor is not None else {}
        return cls(
            id=feedback.id,
            patient_id=feedback.patient_id,
            patient_name=feedback.patient.full_name,
            patient_email=feedback.patient.email,
            doctor_id=feedback.doctor_id,
            rating=feedback.rating,
            comments=feedback.comments,
            submitted_at=feedback.submitted_at,
            **doctor_fields,
        )
