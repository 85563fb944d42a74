from .user import UserModel
from .patient import PatientModel
from .doctor import DoctorModel
from .department import DepartmentModel
from .schedule import DoctorScheduleModel
from .appointment import AppointmentModel
from .medical_record import MedicalRecordModel
from .feedback import FeedbackModel
from .otp import OtpModel, OtpRequestModel

__all__ = [
    "UserModel",
    "PatientModel",
    "DoctorModel",
    "DepartmentModel",
    "DoctorScheduleModel",
    "AppointmentModel",
    "MedicalRecordModel",
    "FeedbackModel",
    "OtpModel",
    "OtpRequestModel",
]
