# healthcare_portal/db/models/appointment.py
from sqlalchemy import (
    Column,
    Integer,
    Date,
    Time,
    DateTime,
    String,
    Text,
    ForeignKey,
)
from sqlalchemy.orm import relationship
from healthcare_portal.db.base import Base, utcnow


class AppointmentModel(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    schedule_id = Column(
        Integer, ForeignKey("doctor_schedules.id"), nullable=False, index=True
    )
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(Time, nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    status = Column(
        String(20), default="PENDING", nullable=False
    )  # PENDING, CONFIRMED, COMPLETED, CANCELLED

    patient = relationship("UserModel", foreign_keys=[patient_id])
    doctor = relationship("UserModel", foreign_keys=[doctor_id])
    schedule = relationship("DoctorScheduleModel", back_populates="appointments")
