# healthcare_portal/db/models/patient.py
from sqlalchemy import Column, Integer, String, Date, Text, ForeignKey
from sqlalchemy.orm import relationship
from healthcare_portal.db.base import Base

class PatientModel(Base):
    __tablename__ = "patients"

    user_id       = Column(Integer,
                           ForeignKey("users.id", ondelete="CASCADE"),
                           primary_key=True)

    date_of_birth = Column(Date)
    gender        = Column(String(10))  # 'Male', 'Female', 'Other'
    address       = Column(Text)

    user = relationship("UserModel", back_populates="patient_profile")
