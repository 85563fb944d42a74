# healthcare_portal/db/models/feedback.py
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from healthcare_portal.db.base import Base, utcnow


class FeedbackModel(Base):
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)  # NULL = general feedback
    rating = Column(Integer, nullable=False)
    comments = Column(Text)
    submitted_at = Column(DateTime, default=utcnow, nullable=False)

    patient = relationship("UserModel", foreign_keys=[patient_id])
    doctor = relationship("UserModel", foreign_keys=[doctor_id])

    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_feedback_rating_range"),
    )
