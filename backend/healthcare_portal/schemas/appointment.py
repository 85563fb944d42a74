# healthcare_portal/schemas/appointment.py
from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel

from healthcare_portal.config.constants import AppointmentStatus
from healthcare_portal.schemas.shared import doctor_details


class AppointmentCreate(BaseModel):
    patient_id: Optional[int] = None  # defaults to the calling patient
    doctor_id: int
    schedule_id: int
    appointment_date: date
    appointment_time: time
    reason: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.PENDING


class AppointmentUpdate(BaseModel):
    appointment_date: Optional[date] = None
    appointment_time: Optional[time] = None
    reason: Optional[str] = None


class AppointmentOut(BaseModel):
    id: int
    patient_id: int
    patient_name: str
    patient_email: str
    doctor_id: int
    doctor_name: str
    doctor_email: str
    schedule_id: int
    appointment_date: date
    appointment_time: time
    reason: Optional[str] = None
    status: AppointmentStatus
    department_name: Optional[str] = None
    doctor_specialization: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_model(cls, appointment) -> "AppointmentOut":
        return cls(
            id=appointment.id,
            patient_id=appointment.patient_id,
            patient_name=appointment.patient.full_name,
            patient_email=appointment.patient.email,
            doctor_id=appointment.doctor_id,
            schedule_id=appointment.schedule_id,
            appointment_date=appointment.appointment_date,
            appointment_time=appointment.appointment_time,
            reason=appointment.reason,
            status=AppointmentStatus(appointment.status),
            created_at=appointment.created_at,
            **doctor_details(appointment.doctor),
        )
