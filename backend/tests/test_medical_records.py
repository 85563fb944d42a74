# tests/test_medical_records.py
from datetime import date, datetime

import pytest

from healthcare_portal.config.constants import AppointmentStatus
from healthcare_portal.core.exceptions import ForbiddenError, InvalidInputError, NotFoundError
from healthcare_portal.db.crud import appointment as appointments
from healthcare_portal.db.crud import medical_record as records
from healthcare_portal.db.crud import schedule as schedules
from healthcare_portal.schemas.medical_record import MedicalRecordRequest, MedicalRecordUpdate
from tests._helpers import CLINIC_DAY, NINE, TEN


@pytest.fixture
async def visit(db, users, principals):
    """A PENDING 09:00 appointment between the patient and Dr. House."""
    schedule = await schedules.create_schedule(
        db, principals["doctor"], users["doctor"].id, CLINIC_DAY, NINE, TEN
    )
    return await appointments.create_appointment(
        db,
        principals["patient"],
        patient_id=users["patient"].id,
        doctor_id=users["doctor"].id,
        schedule_id=schedule.id,
        appointment_date=CLINIC_DAY,
        appointment_time=NINE,
    )


@pytest.fixture
async def confirmed_visit(db, principals, visit):
    return await appointments.update_appointment_status(
        db, principals["doctor"], visit.id, AppointmentStatus.CONFIRMED
    )


def _request(appointment, **overrides):
    fields = dict(
        patient_id=appointment.patient_id,
        doctor_id=appointment.doctor_id,
        appointment_id=appointment.id,
        record_date=appointment.appointment_date,
        diagnosis="Hypertension",
        prescription="Lisinopril 10mg",
    )
    fields.update(overrides)
    return MedicalRecordRequest(**fields)


async def test_record_completes_the_appointment(db, principals, confirmed_visit):
    record = await records.create_medical_record(db, principals["doctor"], _request(confirmed_visit))

    assert record.diagnosis == "Hypertension"
    assert record.doctor.doctor_profile.department.name == "Cardiology"
    appointment = await appointments.get_appointment(db, principals["admin"], confirmed_visit.id)
    assert appointment.status == AppointmentStatus.COMPLETED.value


async def test_second_record_is_rejected(db, principals, confirmed_visit):
    await records.create_medical_record(db, principals["doctor"], _request(confirmed_visit))
    with pytest.raises(InvalidInputError):
        await records.create_medical_record(db, principals["doctor"], _request(confirmed_visit))


async def test_record_needs_confirmed_appointment(db, principals, visit):
    with pytest.raises(InvalidInputError):
        await records.create_medical_record(db, principals["doctor"], _request(visit))


async def test_record_date_must_match(db, principals, confirmed_visit):
    with pytest.raises(InvalidInputError):
        await records.create_medical_record(
            db, principals["doctor"], _request(confirmed_visit, record_date=date(2024, 6, 2))
        )


async def test_record_not_before_appointment_starts(db, principals, confirmed_visit):
    early = datetime.combine(CLINIC_DAY, NINE).replace(hour=8)
    with pytest.raises(InvalidInputError):
        await records.create_medical_record(db, principals["doctor"], _request(confirmed_visit), now=early)

    on_time = datetime.combine(CLINIC_DAY, NINE).replace(minute=5)
    record = await records.create_medical_record(db, principals["doctor"], _request(confirmed_visit), now=on_time)
    assert record.appointment_id == confirmed_visit.id


async def test_record_must_match_participants(db, users, principals, confirmed_visit):
    with pytest.raises(InvalidInputError):
        await records.create_medical_record(
            db, principals["admin"], _request(confirmed_visit, patient_id=users["other_patient"].id)
        )


async def test_record_for_unknown_appointment(db, principals, confirmed_visit):
    with pytest.raises(NotFoundError):
        await records.create_medical_record(db, principals["doctor"], _request(confirmed_visit, appointment_id=999))


async def test_other_doctor_cannot_write_record(db, principals, confirmed_visit):
    with pytest.raises(ForbiddenError):
        await records.create_medical_record(db, principals["other_doctor"], _request(confirmed_visit))


async def test_awaiting_record_lists_open_appointments(db, users, principals, confirmed_visit):
    waiting = await appointments.list_awaiting_record(db, principals["doctor"], users["patient"].id)
    assert [a.id for a in waiting] == [confirmed_visit.id]

    await records.create_medical_record(db, principals["doctor"], _request(confirmed_visit))
    assert await appointments.list_awaiting_record(db, principals["doctor"], users["patient"].id) == []


async def test_record_visibility(db, users, principals, confirmed_visit):
    record = await records.create_medical_record(db, principals["doctor"], _request(confirmed_visit))

    assert (await records.get_medical_record(db, principals["patient"], record.id)).id == record.id
    with pytest.raises(ForbiddenError):
        await records.get_medical_record(db, principals["other_patient"], record.id)

    assert len(await records.list_by_patient(db, principals["doctor"], users["patient"].id)) == 1
    assert await records.list_by_patient(db, principals["other_doctor"], users["patient"].id) == []
    assert len(await records.list_my_medical_records(db, principals["patient"])) == 1
    with pytest.raises(ForbiddenError):
        await records.list_medical_records(db, principals["doctor"])


async def test_update_and_delete_record(db, principals, confirmed_visit):
    record = await records.create_medical_record(db, principals["doctor"], _request(confirmed_visit))

    updated = await records.update_medical_record(
        db, principals["doctor"], record.id, MedicalRecordUpdate(notes="Recheck in 3 months")
    )
    assert updated.notes == "Recheck in 3 months"
    assert updated.diagnosis == "Hypertension"

    with pytest.raises(ForbiddenError):
        await records.delete_medical_record(db, principals["patient"], record.id)
    await records.delete_medical_record(db, principals["admin"], record.id)
    with pytest.raises(NotFoundError):
        await records.get_medical_record(db, principals["admin"], record.id)


async def test_appointment_with_record_cannot_be_deleted(db, principals, confirmed_visit):
    await records.create_medical_record(db, principals["doctor"], _request(confirmed_visit))
    with pytest.raises(InvalidInputError):
        await appointments.delete_appointment(db, principals["admin"], confirmed_visit.id)
