# healthcare_portal/db/models/schedule.py
from sqlalchemy import (
    Column,
    Integer,
    Date,
    Time,
    Boolean,
    ForeignKey,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from healthcare_portal.db.base import Base


class DoctorScheduleModel(Base):
    __tablename__ = "doctor_schedules"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)

    doctor = relationship("UserModel", foreign_keys=[doctor_id])
    appointments = relationship("AppointmentModel", back_populates="schedule")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_schedule_start_before_end"),
        Index("idx_schedule_doctor_date", "doctor_id", "date"),
    )
