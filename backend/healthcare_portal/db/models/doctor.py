# healthcare_portal/db/models/doctor.py
from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from healthcare_portal.db.base import Base

class DoctorModel(Base):
    __tablename__ = "doctors"

    user_id          = Column(Integer,
                              ForeignKey("users.id", ondelete="CASCADE"),
                              primary_key=True)

    specialization   = Column(String(100))
    license_number   = Column(String(50), unique=True)
    experience_years = Column(Integer)
    department_id    = Column(Integer,
                              ForeignKey("departments.id", ondelete="SET NULL"),
                              nullable=True)

    user = relationship("UserModel", back_populates="doctor_profile")
    department = relationship("DepartmentModel", back_populates="doctors")
