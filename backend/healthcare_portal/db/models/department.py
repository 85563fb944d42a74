# healthcare_portal/db/models/department.py
from sqlalchemy import Column, Integer, String, Text
from sqlalchemy.orm import relationship
from healthcare_portal.db.base import Base


class DepartmentModel(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text)

    # Doctors reference a department; deleting one leaves them unassigned.
    doctors = relationship("DoctorModel", back_populates="department")
