# healthcare_portal/schemas/schedule.py
from datetime import date, time
from typing import List, Optional

from pydantic import BaseModel, model_validator


class ScheduleRequest(BaseModel):
    doctor_id: int
    date: date
    start_time: time
    end_time: time

    @model_validator(mode="after")
    def _start_before_end(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class ScheduleOut(BaseModel):
    id: int
    doctor_id: int
    doctor_name: Optional[str] = None
    date: date
    start_time: time
    end_time: time
    is_available: bool
    booked_times: List[str] = []

    @classmethod
    def from_model(cls, schedule, booked_times: Optional[List[str]] = None) -> "ScheduleOut":
        doctor = schedule.doctor
        return cls(
            id=schedule.id,
            doctor_id=schedule.doctor_id,
            doctor_name=doctor.full_name if doctor is not None else None,
            date=schedule.date,
            start_time=schedule.start_time,
            end_time=schedule.end_time,
            is_available=schedule.is_available,
            booked_times=booked_times or [],
        )
