# healthcare_portal/db/crud/schedule.py
import logging
from datetime import date, time
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from healthcare_portal.config.constants import AppointmentStatus, Role
from healthcare_portal.core.exceptions import (
    InvalidInputError,
    NotFoundError,
    ScheduleAlreadyBookedError,
    TimeConflictError,
)
from healthcare_portal.core.policy import Action, Principal, Target, authorize
from healthcare_portal.db.crud.user import get_user_with_role
from healthcare_portal.db.models import AppointmentModel, DoctorScheduleModel

logger = logging.getLogger(__name__)

SCHEDULE_LOAD_OPTIONS = (selectinload(DoctorScheduleModel.doctor),)


async def get_schedule(db: AsyncSession, schedule_id: int) -> DoctorScheduleModel:
    query = (
        select(DoctorScheduleModel)
        .options(*SCHEDULE_LOAD_OPTIONS)
        .where(DoctorScheduleModel.id == schedule_id)
        .execution_options(populate_existing=True)
    )
    schedule = (await db.execute(query)).scalar_one_or_none()
    if schedule is None:
        raise NotFoundError(f"Schedule not found with id: {schedule_id}")
    return schedule


async def _list(db: AsyncSession, *criteria) -> List[DoctorScheduleModel]:
    query = (
        select(DoctorScheduleModel)
        .options(*SCHEDULE_LOAD_OPTIONS)
        .where(*criteria)
        .order_by(DoctorScheduleModel.date, DoctorScheduleModel.start_time)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def has_active_appointment(db: AsyncSession, schedule_id: int) -> bool:
    query = select(AppointmentModel.id).where(
        AppointmentModel.schedule_id == schedule_id,
        AppointmentModel.status != AppointmentStatus.CANCELLED.value,
    )
    return (await db.execute(query.limit(1))).scalar_one_or_none() is not None


def _check_window(start_time: time, end_time: time) -> None:
    if start_time >= end_time:
        raise InvalidInputError("Start time must be before end time")


async def _check_overlap(
    db: AsyncSession,
    doctor_id: int,
    on_date: date,
    start_time: time,
    end_time: time,
    exclude_id: Optional[int] = None,
) -> None:
    """
    Raise TimeConflictError if the doctor already has a schedule on ``on_date``
    whose [start, end) interval overlaps the given one. Touching windows
    (one ends exactly when the other starts) do not conflict.
    """
    query = select(DoctorScheduleModel.id).where(
        DoctorScheduleModel.doctor_id == doctor_id,
        DoctorScheduleModel.date == on_date,
        DoctorScheduleModel.start_time < end_time,
        DoctorScheduleModel.end_time > start_time,
    )
    if exclude_id is not None:
        query = query.where(DoctorScheduleModel.id != exclude_id)

    conflict_id = (await db.execute(query.limit(1))).scalar_one_or_none()
    if conflict_id is not None:
        logger.warning(
            f"Schedule conflict for doctor_id={doctor_id} on {on_date} "
            f"{start_time}-{end_time}: overlaps schedule_id={conflict_id}"
        )
        raise TimeConflictError()


async def create_schedule(
    db: AsyncSession,
    actor: Principal,
    doctor_id: int,
    on_date: date,
    start_time: time,
    end_time: time,
) -> DoctorScheduleModel:
    """
    Open a new availability window for a doctor.

    Args:
        db: Database session
        actor: Caller; an admin, or the doctor the window belongs to
        doctor_id: Doctor the window belongs to
        on_date: Calendar date of the window
        start_time: Inclusive start
        end_time: Exclusive end

    Returns:
        The persisted schedule, available for booking.
    """
    authorize(actor, Action.SCHEDULE_MANAGE, Target(doctor_id=doctor_id))
    _check_window(start_time, end_time)
    await get_user_with_role(db, doctor_id, Role.DOCTOR)
    await _check_overlap(db, doctor_id, on_date, start_time, end_time)

    schedule = DoctorScheduleModel(
        doctor_id=doctor_id,
        date=on_date,
        start_time=start_time,
        end_time=end_time,
        is_available=True,
    )
    db.add(schedule)
    await db.commit()
    logger.info(f"Created schedule_id={schedule.id} for doctor_id={doctor_id} on {on_date}")
    return await get_schedule(db, schedule.id)


async def update_schedule(
    db: AsyncSession,
    actor: Principal,
    schedule_id: int,
    doctor_id: int,
    on_date: date,
    start_time: time,
    end_time: time,
) -> DoctorScheduleModel:
    """
    Move or resize a window. The availability flag is left as it is.

    A window holding an active appointment cannot be changed, since the
    appointment's doctor, date and time must stay inside it.
    """
    schedule = await get_schedule(db, schedule_id)
    authorize(actor, Action.SCHEDULE_MANAGE, schedule)
    authorize(actor, Action.SCHEDULE_MANAGE, Target(doctor_id=doctor_id))
    _check_window(start_time, end_time)
    if await has_active_appointment(db, schedule_id):
        logger.warning(f"Update rejected: schedule_id={schedule_id} has an active appointment")
        raise InvalidInputError("Schedule has an active appointment and cannot be changed")
    await get_user_with_role(db, doctor_id, Role.DOCTOR)
    await _check_overlap(db, doctor_id, on_date, start_time, end_time, exclude_id=schedule_id)

    schedule.doctor_id = doctor_id
    schedule.date = on_date
    schedule.start_time = start_time
    schedule.end_time = end_time
    await db.commit()
    logger.info(f"Updated schedule_id={schedule_id}")
    return await get_schedule(db, schedule_id)


async def _delete(db: AsyncSession, schedule: DoctorScheduleModel) -> None:
    referenced = await db.execute(
        select(AppointmentModel.id).where(AppointmentModel.schedule_id == schedule.id).limit(1)
    )
    if referenced.scalar_one_or_none() is not None:
        raise InvalidInputError("Schedule has appointments and cannot be deleted")
    schedule_id = schedule.id
    await db.execute(delete(DoctorScheduleModel).where(DoctorScheduleModel.id == schedule_id))
    await db.commit()
    logger.info(f"Deleted schedule_id={schedule_id}")


async def delete_schedule(db: AsyncSession, actor: Principal, schedule_id: int) -> None:
    authorize(actor, Action.SCHEDULE_DELETE_ANY)
    await _delete(db, await get_schedule(db, schedule_id))


async def delete_my_schedule(db: AsyncSession, actor: Principal, schedule_id: int) -> None:
    """Doctors delete their own windows. Someone else's window reads as not found."""
    authorize(actor, Action.SCHEDULE_OWN)
    query = select(DoctorScheduleModel).where(
        DoctorScheduleModel.id == schedule_id,
        DoctorScheduleModel.doctor_id == actor.user_id,
    )
    schedule = (await db.execute(query)).scalar_one_or_none()
    if schedule is None:
        raise NotFoundError(f"Schedule not found with id: {schedule_id}")
    await _delete(db, schedule)


async def list_schedules(db: AsyncSession) -> List[DoctorScheduleModel]:
    return await _list(db)


async def list_doctor_schedules(db: AsyncSession, doctor_id: int) -> List[DoctorScheduleModel]:
    return await _list(db, DoctorScheduleModel.doctor_id == doctor_id)


async def list_my_schedules(db: AsyncSession, actor: Principal) -> List[DoctorScheduleModel]:
    authorize(actor, Action.SCHEDULE_OWN)
    return await _list(db, DoctorScheduleModel.doctor_id == actor.user_id)


async def find_available_schedules(db: AsyncSession, on_date: date) -> List[DoctorScheduleModel]:
    return await _list(
        db,
        DoctorScheduleModel.date == on_date,
        DoctorScheduleModel.is_available.is_(True),
    )


async def booked_times(db: AsyncSession, schedule_ids: Iterable[int]) -> Dict[int, List[str]]:
    """
    Map each schedule id to the sorted "HH:MM" start times of its
    non-cancelled appointments. Schedules without bookings map to [].
    """
    ids = list(schedule_ids)
    if not ids:
        return {}
    times: Dict[int, set] = {schedule_id: set() for schedule_id in ids}

    query = select(AppointmentModel.schedule_id, AppointmentModel.appointment_time).where(
        AppointmentModel.schedule_id.in_(ids),
        AppointmentModel.status != AppointmentStatus.CANCELLED.value,
    )
    for schedule_id, appointment_time in (await db.execute(query)).all():
        times[schedule_id].add(appointment_time.strftime("%H:%M"))
    return {schedule_id: sorted(slots) for schedule_id, slots in times.items()}


async def with_booked_times(
    db: AsyncSession, schedules: List[DoctorScheduleModel]
) -> List[Tuple[DoctorScheduleModel, List[str]]]:
    slots = await booked_times(db, (s.id for s in schedules))
    return [(schedule, slots.get(schedule.id, [])) for schedule in schedules]


async def claim_schedule(db: AsyncSession, schedule_id: int) -> None:
    """
    Flip availability to false in a single conditional UPDATE. Two callers
    racing for the same schedule cannot both see a matched row. Does not commit.
    """
    result = await db.execute(
        update(DoctorScheduleModel)
        .where(
            DoctorScheduleModel.id == schedule_id,
            DoctorScheduleModel.is_available.is_(True),
        )
        .values(is_available=False)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        exists = await db.execute(
            select(DoctorScheduleModel.id).where(DoctorScheduleModel.id == schedule_id)
        )
        if exists.scalar_one_or_none() is None:
            raise NotFoundError(f"Schedule not found with id: {schedule_id}")
        logger.warning(f"Schedule_id={schedule_id} is already booked")
        raise ScheduleAlreadyBookedError()


async def release_schedule(db: AsyncSession, schedule_id: int) -> None:
    """Mark the schedule available again. Does not commit."""
    await db.execute(
        update(DoctorScheduleModel)
        .where(DoctorScheduleModel.id == schedule_id)
        .values(is_available=True)
        .execution_options(synchronize_session=False)
    )


async def book_schedule(db: AsyncSession, actor: Principal, schedule_id: int) -> DoctorScheduleModel:
    """Whole-window booking without an appointment row."""
    authorize(actor, Action.SCHEDULE_BOOK)
    await claim_schedule(db, schedule_id)
    await db.commit()
    logger.info(f"Schedule_id={schedule_id} booked by user id={actor.user_id}")
    return await get_schedule(db, schedule_id)
