# healthcare_portal/schemas/medical_record.py
from datetime import date
from typing import Optional

from pydantic import BaseModel

from healthcare_portal.schemas.shared import doctor_details


class MedicalRecordRequest(BaseModel):
    patient_id: int
    doctor_id: int
    appointment_id: int
    record_date: date
    diagnosis: Optional[str] = None
    prescription: Optional[str] = None
    notes: Optional[str] = None
    attachments: Optional[str] = None


class MedicalRecordUpdate(BaseModel):
    diagnosis: Optional[str] = None
    prescription: Optional[str] = None
    notes: Optional[str] = None
    attachments: Optional[str] = None


class MedicalRecordOut(BaseModel):
    id: int
    patient_id: int
    patient_name: str
    patient_email: str
    doctor_id: int
    doctor_name: str
    doctor_email: str
    appointment_id: int
    record_date: date
    diagnosis: Optional[str] = None
    prescription: Optional[str] = None
    notes: Optional[str] = None
    attachments: Optional[str] = None
    department_name: Optional[str] = None
    doctor_specialization: Optional[str] = None

    @classmethod
    def from_model(cls, record) -> "MedicalRecordOut":
        return cls(
            id=record.id,
            patient_id=record.patient_id,
            patient_name=record.patient.full_name,
            patient_email=record.patient.email,
            doctor_id=record.doctor_id,
            appointment_id=record.appointment_id,
            record_date=record.record_date,
            diagnosis=record.diagnosis,
            prescription=record.prescription,
            notes=record.notes,
            attachments=record.attachments,
            **doctor_details(record.doctor),
        )
