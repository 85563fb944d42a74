# healthcare_portal/db/crud/medical_record.py
import logging
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from healthcare_portal.config.constants import AppointmentStatus, Role
from healthcare_portal.core.exceptions import InvalidInputError, NotFoundError
from healthcare_portal.core.policy import Action, Principal, Target, authorize
from healthcare_portal.db.crud.user import get_user_with_role, with_doctor_details
from healthcare_portal.db.models import AppointmentModel, MedicalRecordModel
from healthcare_portal.schemas.medical_record import MedicalRecordRequest, MedicalRecordUpdate

logger = logging.getLogger(__name__)

RECORD_LOAD_OPTIONS = (
    selectinload(MedicalRecordModel.patient),
    with_doctor_details(MedicalRecordModel.doctor),
)


async def _fetch(db: AsyncSession, record_id: int) -> MedicalRecordModel:
    query = (
        select(MedicalRecordModel)
        .options(*RECORD_LOAD_OPTIONS)
        .where(MedicalRecordModel.id == record_id)
        .execution_options(populate_existing=True)
    )
    record = (await db.execute(query)).scalar_one_or_none()
    if record is None:
        raise NotFoundError(f"Medical record not found with id: {record_id}")
    return record


async def _list(db: AsyncSession, *criteria) -> List[MedicalRecordModel]:
    query = (
        select(MedicalRecordModel)
        .options(*RECORD_LOAD_OPTIONS)
        .where(*criteria)
        .order_by(MedicalRecordModel.record_date.desc(), MedicalRecordModel.id.desc())
        .execution_options(populate_existing=True)
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_medical_record(
    db: AsyncSession,
    actor: Principal,
    data: MedicalRecordRequest,
    now: Optional[datetime] = None,
) -> MedicalRecordModel:
    """
    Write the clinical record for a confirmed appointment and complete it.

    The appointment must belong to the given doctor and patient, be CONFIRMED,
    fall on ``record_date`` and, when that date is today, have already started.
    Each appointment gets at most one record.
    """
    authorize(actor, Action.RECORD_CREATE, Target(doctor_id=data.doctor_id))
    await get_user_with_role(db, data.patient_id, Role.PATIENT)
    await get_user_with_role(db, data.doctor_id, Role.DOCTOR)

    appointment = await db.get(AppointmentModel, data.appointment_id)
    if appointment is None:
        raise NotFoundError(f"Appointment not found with id: {data.appointment_id}")

    if appointment.doctor_id != data.doctor_id or appointment.patient_id != data.patient_id:
        raise InvalidInputError("Appointment does not match the specified doctor and patient")
    if appointment.status != AppointmentStatus.CONFIRMED.value:
        raise InvalidInputError("Medical record can only be created for CONFIRMED appointments")
    if data.record_date != appointment.appointment_date:
        raise InvalidInputError("Record date must match the appointment date")

    # appointment times are clinic wall-clock times
    now = now or datetime.now()
    starts_at = datetime.combine(appointment.appointment_date, appointment.appointment_time)
    if data.record_date == now.date() and now < starts_at:
        raise InvalidInputError("Medical record cannot be created before the appointment time")

    existing = await db.execute(
        select(MedicalRecordModel.id).where(MedicalRecordModel.appointment_id == data.appointment_id)
    )
    if existing.scalar_one_or_none() is not None:
        raise InvalidInputError("Medical record already exists for this appointment")

    record = MedicalRecordModel(**data.model_dump())
    db.add(record)
    appointment.status = AppointmentStatus.COMPLETED.value
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidInputError("Medical record already exists for this appointment")

    logger.info(
        f"Created medical record id={record.id} for appointment_id={data.appointment_id}; "
        f"appointment completed"
    )
    return await _fetch(db, record.id)


async def update_medical_record(
    db: AsyncSession, actor: Principal, record_id: int, data: MedicalRecordUpdate
) -> MedicalRecordModel:
    record = await _fetch(db, record_id)
    authorize(actor, Action.RECORD_MODIFY, record)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(record, field, value)
    await db.commit()
    logger.info(f"Updated medical record id={record_id}")
    return await _fetch(db, record_id)


async def get_medical_record(db: AsyncSession, actor: Principal, record_id: int) -> MedicalRecordModel:
    record = await _fetch(db, record_id)
    authorize(actor, Action.RECORD_VIEW, record)
    return record


async def delete_medical_record(db: AsyncSession, actor: Principal, record_id: int) -> None:
    record = await _fetch(db, record_id)
    authorize(actor, Action.RECORD_MODIFY, record)
    await db.execute(delete(MedicalRecordModel).where(MedicalRecordModel.id == record_id))
    await db.commit()
    logger.info(f"Deleted medical record id={record_id}")


async def list_medical_records(db: AsyncSession, actor: Principal) -> List[MedicalRecordModel]:
    authorize(actor, Action.RECORD_LIST_ALL)
    return await _list(db)


async def list_by_patient(db: AsyncSession, actor: Principal, patient_id: int) -> List[MedicalRecordModel]:
    """Admins and the patient see everything; a doctor sees only what they wrote."""
    if actor.role == Role.DOCTOR:
        return await _list(
            db,
            MedicalRecordModel.patient_id == patient_id,
            MedicalRecordModel.doctor_id == actor.user_id,
        )
    authorize(actor, Action.RECORD_VIEW, Target(patient_id=patient_id))
    return await _list(db, MedicalRecordModel.patient_id == patient_id)


async def list_by_doctor(db: AsyncSession, actor: Principal, doctor_id: int) -> List[MedicalRecordModel]:
    authorize(actor, Action.RECORD_MODIFY, Target(doctor_id=doctor_id))
    return await _list(db, MedicalRecordModel.doctor_id == doctor_id)


async def list_by_date(db: AsyncSession, actor: Principal, on_date: date) -> List[MedicalRecordModel]:
    authorize(actor, Action.RECORD_LIST_ALL)
    return await _list(db, MedicalRecordModel.record_date == on_date)


async def list_my_medical_records(db: AsyncSession, actor: Principal) -> List[MedicalRecordModel]:
    """Patients get their own history, doctors the records they wrote, admins everything."""
    if actor.is_admin:
        return await _list(db)
    if actor.role == Role.DOCTOR:
        return await _list(db, MedicalRecordModel.doctor_id == actor.user_id)
    return await _list(db, MedicalRecordModel.patient_id == actor.user_id)
