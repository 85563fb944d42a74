# healthcare_portal/db/models/medical_record.py
from sqlalchemy import Column, Integer, Date, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from healthcare_portal.db.base import Base, utcnow


class MedicalRecordModel(Base):
    __tablename__ = "medical_records"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    # one record per appointment
    appointment_id = Column(
        Integer, ForeignKey("appointments.id"), nullable=False, unique=True
    )
    record_date = Column(Date, nullable=False)
    diagnosis = Column(Text)
    prescription = Column(Text)
    notes = Column(Text)
    attachments = Column(Text)  # serialized list of file references, stored as-is
    created_at = Column(DateTime, default=utcnow, nullable=False)

    patient = relationship("UserModel", foreign_keys=[patient_id])
    doctor = relationship("UserModel", foreign_keys=[doctor_id])
    appointment = relationship("AppointmentModel")
