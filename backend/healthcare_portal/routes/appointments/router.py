from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from healthcare_portal.config.constants import AppointmentStatus
from healthcare_portal.core.middleware import get_current_user, get_db
from healthcare_portal.core.policy import Principal
from healthcare_portal.db.crud import appointment as appointments
from healthcare_portal.schemas.appointment import AppointmentCreate, AppointmentOut, AppointmentUpdate
from healthcare_portal.schemas.shared import ApiResponse

router = APIRouter(prefix="/appointments", tags=["appointments"])


def _out(items) -> List[AppointmentOut]:
    return [AppointmentOut.from_model(a) for a in items]


@router.post("", response_model=AppointmentOut, status_code=status.HTTP_201_CREATED)
async def create_appointment_route(
    body: AppointmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    """Book an appointment. Patients book for themselves; admins may book for anyone."""
    appointment = await appointments.create_appointment(
        db,
        current_user,
        patient_id=body.patient_id if body.patient_id is not None else current_user.user_id,
        doctor_id=body.doctor_id,
        schedule_id=body.schedule_id,
        appointment_date=body.appointment_date,
        appointment_time=body.appointment_time,
        reason=body.reason,
        status=body.status,
    )
    return AppointmentOut.from_model(appointment)


@router.get("", response_model=List[AppointmentOut])
async def list_appointments_route(
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await appointments.list_appointments(db, current_user))


@router.get("/my-appointments", response_model=List[AppointmentOut])
async def my_appointments_route(
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await appointments.list_my_appointments(db, current_user))


@router.get("/patient/{patient_id}", response_model=List[AppointmentOut])
async def patient_appointments_route(
    patient_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await appointments.list_by_patient(db, current_user, patient_id))


@router.get("/patient/{patient_id}/awaiting-record", response_model=List[AppointmentOut])
async def awaiting_record_route(
    patient_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await appointments.list_awaiting_record(db, current_user, patient_id))


@router.get("/doctor/{doctor_id}", response_model=List[AppointmentOut])
async def doctor_appointments_route(
    doctor_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await appointments.list_by_doctor(db, current_user, doctor_id))


@router.get("/status/{appointment_status}", response_model=List[AppointmentOut])
async def appointments_by_status_route(
    appointment_status: AppointmentStatus,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await appointments.list_by_status(db, current_user, appointment_status))


@router.get("/date/{on_date}", response_model=List[AppointmentOut])
async def appointments_by_date_route(
    on_date: date,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await appointments.list_by_date(db, current_user, on_date))


@router.get("/{appointment_id}", response_model=AppointmentOut)
async def get_appointment_route(
    appointment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return AppointmentOut.from_model(await appointments.get_appointment(db, current_user, appointment_id))


@router.put("/{appointment_id}", response_model=AppointmentOut)
async def update_appointment_route(
    appointment_id: int,
    body: AppointmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    appointment = await appointments.update_appointment(db, current_user, appointment_id, body)
    return AppointmentOut.from_model(appointment)


@router.put("/{appointment_id}/cancel", response_model=AppointmentOut)
async def cancel_appointment_route(
    appointment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return AppointmentOut.from_model(await appointments.cancel_appointment(db, current_user, appointment_id))


@router.put("/{appointment_id}/complete", response_model=AppointmentOut)
async def complete_appointment_route(
    appointment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return AppointmentOut.from_model(await appointments.complete_appointment(db, current_user, appointment_id))


@router.put("/{appointment_id}/status", response_model=AppointmentOut)
async def update_status_route(
    appointment_id: int,
    new_status: AppointmentStatus = Query(..., alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    appointment = await appointments.update_appointment_status(db, current_user, appointment_id, new_status)
    return AppointmentOut.from_model(appointment)


@router.delete("/{appointment_id}", response_model=ApiResponse)
async def delete_appointment_route(
    appointment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    await appointments.delete_appointment(db, current_user, appointment_id)
    return ApiResponse(success=True, message="Appointment deleted successfully")
