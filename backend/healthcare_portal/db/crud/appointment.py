# healthcare_portal/db/crud/appointment.py
import logging
from datetime import date, time
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from healthcare_portal.config.constants import (
    APPOINTMENT_TRANSITIONS,
    INITIAL_APPOINTMENT_STATUSES,
    AppointmentStatus,
    Role,
)
from healthcare_portal.core.exceptions import (
    InvalidInputError,
    InvalidStatusTransitionError,
    NotFoundError,
    PortalError,
    ScheduleAlreadyBookedError,
)
from healthcare_portal.core.policy import Action, Principal, Target, authorize, is_allowed
from healthcare_portal.db.crud.schedule import (
    claim_schedule,
    get_schedule,
    has_active_appointment,
    release_schedule,
)
from healthcare_portal.db.crud.user import get_user_with_role, with_doctor_details
from healthcare_portal.db.models import AppointmentModel, DoctorScheduleModel, MedicalRecordModel
from healthcare_portal.schemas.appointment import AppointmentUpdate

logger = logging.getLogger(__name__)

APPOINTMENT_LOAD_OPTIONS = (
    selectinload(AppointmentModel.patient),
    with_doctor_details(AppointmentModel.doctor),
)


async def _fetch(db: AsyncSession, appointment_id: int) -> AppointmentModel:
    query = (
        select(AppointmentModel)
        .options(*APPOINTMENT_LOAD_OPTIONS)
        .where(AppointmentModel.id == appointment_id)
        .execution_options(populate_existing=True)
    )
    appointment = (await db.execute(query)).scalar_one_or_none()
    if appointment is None:
        raise NotFoundError(f"Appointment not found with id: {appointment_id}")
    return appointment


async def _list(db: AsyncSession, *criteria) -> List[AppointmentModel]:
    query = (
        select(AppointmentModel)
        .options(*APPOINTMENT_LOAD_OPTIONS)
        .where(*criteria)
        .order_by(AppointmentModel.appointment_date, AppointmentModel.appointment_time)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(query)
    return list(result.scalars().all())


def _scope(actor: Principal) -> list:
    """Row filter that limits a listing to what the caller may see."""
    if actor.is_admin:
        return []
    if actor.role == Role.DOCTOR:
        return [AppointmentModel.doctor_id == actor.user_id]
    return [AppointmentModel.patient_id == actor.user_id]


def _check_slot(schedule: DoctorScheduleModel, appointment_date: date, appointment_time: time) -> None:
    if appointment_date != schedule.date:
        raise InvalidInputError("Appointment date must match the schedule date")
    if not (schedule.start_time <= appointment_time < schedule.end_time):
        raise InvalidInputError("Appointment time must fall within the schedule window")


async def _transition(db: AsyncSession, appointment: AppointmentModel, new_status: AppointmentStatus) -> None:
    """Apply a guarded status change. Cancelling hands the schedule back. Does not commit."""
    current = AppointmentStatus(appointment.status)
    if new_status not in APPOINTMENT_TRANSITIONS[current]:
        logger.warning(
            f"Rejected status change {current.value} -> {new_status.value} "
            f"for appointment_id={appointment.id}"
        )
        raise InvalidStatusTransitionError(current.value, new_status.value)

    appointment.status = new_status.value
    if new_status == AppointmentStatus.CANCELLED:
        await release_schedule(db, appointment.schedule_id)


async def create_appointment(
    db: AsyncSession,
    actor: Principal,
    *,
    patient_id: int,
    doctor_id: int,
    schedule_id: int,
    appointment_date: date,
    appointment_time: time,
    reason: Optional[str] = None,
    status: AppointmentStatus = AppointmentStatus.PENDING,
) -> AppointmentModel:
    """
    Book a patient into a doctor's schedule window.

    A window holds one active (non-cancelled) appointment at a time. The
    availability flag is flipped with a conditional UPDATE in the same
    transaction as the insert, so concurrent bookings of one window cannot
    both succeed.

    Raises:
        NotFoundError: patient, doctor or schedule does not exist
        InvalidInputError: schedule/doctor mismatch, date or time outside the
            window, or an initial status other than PENDING/CONFIRMED
        ScheduleAlreadyBookedError: the window is taken
    """
    authorize(actor, Action.APPOINTMENT_CREATE, Target(patient_id=patient_id))
    if status not in INITIAL_APPOINTMENT_STATUSES:
        raise InvalidInputError("New appointments must be PENDING or CONFIRMED")

    await get_user_with_role(db, patient_id, Role.PATIENT)
    await get_user_with_role(db, doctor_id, Role.DOCTOR)
    schedule = await get_schedule(db, schedule_id)

    if schedule.doctor_id != doctor_id:
        raise InvalidInputError("Schedule does not belong to the selected doctor")
    _check_slot(schedule, appointment_date, appointment_time)

    if not schedule.is_available or await has_active_appointment(db, schedule_id):
        logger.warning(f"Booking rejected: schedule_id={schedule_id} already booked")
        raise ScheduleAlreadyBookedError()

    await claim_schedule(db, schedule_id)
    appointment = AppointmentModel(
        patient_id=patient_id,
        doctor_id=doctor_id,
        schedule_id=schedule_id,
        appointment_date=appointment_date,
        appointment_time=appointment_time,
        reason=reason,
        status=status.value,
    )
    db.add(appointment)
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.error(f"Failed to persist appointment on schedule_id={schedule_id}", exc_info=True)
        raise

    logger.info(
        f"Created appointment_id={appointment.id} patient_id={patient_id} "
        f"doctor_id={doctor_id} schedule_id={schedule_id} status={status.value}"
    )
    return await _fetch(db, appointment.id)


async def get_appointment(db: AsyncSession, actor: Principal, appointment_id: int) -> AppointmentModel:
    appointment = await _fetch(db, appointment_id)
    authorize(actor, Action.APPOINTMENT_VIEW, appointment)
    return appointment


async def update_appointment(
    db: AsyncSession, actor: Principal, appointment_id: int, data: AppointmentUpdate
) -> AppointmentModel:
    """Change reason, date or time. The new slot must stay inside the same window."""
    appointment = await _fetch(db, appointment_id)
    authorize(actor, Action.APPOINTMENT_UPDATE, appointment)
    if AppointmentStatus(appointment.status) in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED):
        raise InvalidInputError(f"Cannot modify a {appointment.status} appointment")

    changes = data.model_dump(exclude_unset=True)
    if "appointment_date" in changes or "appointment_time" in changes:
        schedule = await get_schedule(db, appointment.schedule_id)
        _check_slot(
            schedule,
            changes.get("appointment_date") or appointment.appointment_date,
            changes.get("appointment_time") or appointment.appointment_time,
        )
    for field, value in changes.items():
        if value is not None:
            setattr(appointment, field, value)

    await db.commit()
    logger.info(f"Updated appointment_id={appointment_id}")
    return await _fetch(db, appointment_id)


async def cancel_appointment(db: AsyncSession, actor: Principal, appointment_id: int) -> AppointmentModel:
    appointment = await _fetch(db, appointment_id)
    authorize(actor, Action.APPOINTMENT_CANCEL, appointment)
    await _transition(db, appointment, AppointmentStatus.CANCELLED)
    await db.commit()
    logger.info(f"Cancelled appointment_id={appointment_id}; schedule_id={appointment.schedule_id} released")
    return await _fetch(db, appointment_id)


async def complete_appointment(db: AsyncSession, actor: Principal, appointment_id: int) -> AppointmentModel:
    return await update_appointment_status(db, actor, appointment_id, AppointmentStatus.COMPLETED)


async def update_appointment_status(
    db: AsyncSession, actor: Principal, appointment_id: int, new_status: AppointmentStatus
) -> AppointmentModel:
    appointment = await _fetch(db, appointment_id)
    authorize(actor, Action.APPOINTMENT_SET_STATUS, appointment)
    await _transition(db, appointment, new_status)
    await db.commit()
    logger.info(f"Appointment_id={appointment_id} status set to {new_status.value}")
    return await _fetch(db, appointment_id)


async def delete_appointment(db: AsyncSession, actor: Principal, appointment_id: int) -> None:
    """Remove the row, releasing its schedule unless it was already cancelled."""
    authorize(actor, Action.APPOINTMENT_DELETE)
    appointment = await _fetch(db, appointment_id)

    has_record = await db.execute(
        select(MedicalRecordModel.id).where(MedicalRecordModel.appointment_id == appointment_id)
    )
    if has_record.scalar_one_or_none() is not None:
        raise InvalidInputError("Appointment has a medical record and cannot be deleted")

    if appointment.status != AppointmentStatus.CANCELLED.value:
        await release_schedule(db, appointment.schedule_id)
    await db.execute(delete(AppointmentModel).where(AppointmentModel.id == appointment_id))
    await db.commit()
    logger.info(f"Deleted appointment_id={appointment_id}")


async def list_appointments(db: AsyncSession, actor: Principal) -> List[AppointmentModel]:
    authorize(actor, Action.APPOINTMENT_LIST_ALL)
    return await _list(db)


async def list_my_appointments(db: AsyncSession, actor: Principal) -> List[AppointmentModel]:
    return await _list(db, *_scope(actor))


async def list_by_patient(db: AsyncSession, actor: Principal, patient_id: int) -> List[AppointmentModel]:
    authorize(actor, Action.APPOINTMENT_VIEW, Target(patient_id=patient_id))
    return await _list(db, AppointmentModel.patient_id == patient_id)


async def list_by_doctor(db: AsyncSession, actor: Principal, doctor_id: int) -> List[AppointmentModel]:
    authorize(actor, Action.APPOINTMENT_VIEW, Target(doctor_id=doctor_id))
    return await _list(db, AppointmentModel.doctor_id == doctor_id)


async def list_by_status(
    db: AsyncSession, actor: Principal, status: AppointmentStatus
) -> List[AppointmentModel]:
    return await _list(db, AppointmentModel.status == status.value, *_scope(actor))


async def list_by_date(db: AsyncSession, actor: Principal, on_date: date) -> List[AppointmentModel]:
    return await _list(db, AppointmentModel.appointment_date == on_date, *_scope(actor))


async def list_awaiting_record(
    db: AsyncSession, actor: Principal, patient_id: int
) -> List[AppointmentModel]:
    """The calling doctor's open appointments with a patient that have no medical record yet."""
    authorize(actor, Action.RECORD_AUTHOR)
    recorded = select(MedicalRecordModel.appointment_id)
    return await _list(
        db,
        AppointmentModel.patient_id == patient_id,
        AppointmentModel.doctor_id == actor.user_id,
        AppointmentModel.status.in_(
            [AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value]
        ),
        AppointmentModel.id.not_in(recorded),
    )


async def is_own_appointment(db: AsyncSession, appointment_id: int, actor: Principal) -> bool:
    """Ownership predicate: never raises, any lookup failure is a plain False."""
    try:
        appointment = await _fetch(db, appointment_id)
    except (PortalError, SQLAlchemyError) as e:
        logger.debug(f"Ownership lookup failed for appointment_id={appointment_id}: {e}")
        return False
    return is_allowed(actor, Action.APPOINTMENT_VIEW, appointment)
