# tests/test_appointments.py
from datetime import date, time

import pytest

from healthcare_portal.config.constants import AppointmentStatus
from healthcare_portal.core.exceptions import (
    ForbiddenError,
    InvalidInputError,
    InvalidStatusTransitionError,
    NotFoundError,
    ScheduleAlreadyBookedError,
)
from healthcare_portal.db.crud import appointment as appointments
from healthcare_portal.db.crud import schedule as schedules
from healthcare_portal.schemas.appointment import AppointmentUpdate
from tests._helpers import CLINIC_DAY, NINE, TEN


@pytest.fixture
async def window(db, users, principals):
    return await schedules.create_schedule(
        db, principals["doctor"], users["doctor"].id, CLINIC_DAY, NINE, TEN
    )


async def _book(db, principal, patient, doctor, schedule, at=NINE, **kwargs):
    return await appointments.create_appointment(
        db,
        principal,
        patient_id=patient.id,
        doctor_id=doctor.id,
        schedule_id=schedule.id,
        appointment_date=schedule.date,
        appointment_time=at,
        **kwargs,
    )


async def _is_available(db, schedule_id):
    return (await schedules.get_schedule(db, schedule_id)).is_available


async def test_booking_takes_the_window(db, users, principals, window):
    appointment = await _book(db, principals["patient"], users["patient"], users["doctor"], window, reason="Checkup")

    assert appointment.status == AppointmentStatus.PENDING.value
    assert appointment.patient.full_name == "Pat One"
    assert appointment.doctor.doctor_profile.department.name == "Cardiology"
    assert await _is_available(db, window.id) is False


async def test_second_booking_is_rejected(db, users, principals, window):
    await _book(db, principals["patient"], users["patient"], users["doctor"], window)
    with pytest.raises(ScheduleAlreadyBookedError):
        await _book(db, principals["other_patient"], users["other_patient"], users["doctor"], window, at=time(9, 30))


async def test_booking_a_legacy_booked_window_is_rejected(db, users, principals, window):
    await schedules.book_schedule(db, principals["patient"], window.id)
    with pytest.raises(ScheduleAlreadyBookedError):
        await _book(db, principals["patient"], users["patient"], users["doctor"], window)


async def test_booking_outside_window(db, users, principals, window):
    with pytest.raises(InvalidInputError):
        await _book(db, principals["patient"], users["patient"], users["doctor"], window, at=TEN)
    with pytest.raises(InvalidInputError):
        await appointments.create_appointment(
            db,
            principals["patient"],
            patient_id=users["patient"].id,
            doctor_id=users["doctor"].id,
            schedule_id=window.id,
            appointment_date=date(2024, 6, 2),
            appointment_time=NINE,
        )
    assert await _is_available(db, window.id) is True


async def test_booking_with_wrong_doctor(db, users, principals, window):
    with pytest.raises(InvalidInputError):
        await _book(db, principals["patient"], users["patient"], users["other_doctor"], window)


async def test_booking_missing_schedule(db, users, principals):
    with pytest.raises(NotFoundError):
        await appointments.create_appointment(
            db,
            principals["patient"],
            patient_id=users["patient"].id,
            doctor_id=users["doctor"].id,
            schedule_id=404,
            appointment_date=CLINIC_DAY,
            appointment_time=NINE,
        )


async def test_initial_status_must_be_pending_or_confirmed(db, users, principals, window):
    with pytest.raises(InvalidInputError):
        await _book(
            db, principals["patient"], users["patient"], users["doctor"], window,
            status=AppointmentStatus.COMPLETED,
        )


async def test_patient_cannot_book_for_someone_else(db, users, principals, window):
    with pytest.raises(ForbiddenError):
        await _book(db, principals["patient"], users["other_patient"], users["doctor"], window)


async def test_cancel_releases_window(db, users, principals, window):
    appointment = await _book(db, principals["patient"], users["patient"], users["doctor"], window)

    cancelled = await appointments.cancel_appointment(db, principals["patient"], appointment.id)

    assert cancelled.status == AppointmentStatus.CANCELLED.value
    assert await _is_available(db, window.id) is True


async def test_delete_releases_window(db, users, principals, window):
    appointment = await _book(db, principals["patient"], users["patient"], users["doctor"], window)

    await appointments.delete_appointment(db, principals["admin"], appointment.id)

    assert await _is_available(db, window.id) is True
    with pytest.raises(NotFoundError):
        await appointments.get_appointment(db, principals["admin"], appointment.id)


async def test_delete_is_admin_only(db, users, principals, window):
    appointment = await _book(db, principals["patient"], users["patient"], users["doctor"], window)
    with pytest.raises(ForbiddenError):
        await appointments.delete_appointment(db, principals["doctor"], appointment.id)


async def test_cancel_then_rebook_by_another_patient(db, users, principals, window):
    # doctor opens 09:00-10:00, P books 09:00, P cancels, a second patient books
    first = await _book(db, principals["patient"], users["patient"], users["doctor"], window)
    assert await _is_available(db, window.id) is False

    await appointments.cancel_appointment(db, principals["patient"], first.id)
    assert await _is_available(db, window.id) is True

    second = await _book(db, principals["other_patient"], users["other_patient"], users["doctor"], window)
    assert second.patient_id == users["other_patient"].id
    assert await _is_available(db, window.id) is False


async def test_status_machine_happy_path(db, users, principals, window):
    appointment = await _book(db, principals["patient"], users["patient"], users["doctor"], window)

    confirmed = await appointments.update_appointment_status(
        db, principals["doctor"], appointment.id, AppointmentStatus.CONFIRMED
    )
    assert confirmed.status == AppointmentStatus.CONFIRMED.value

    completed = await appointments.complete_appointment(db, principals["doctor"], appointment.id)
    assert completed.status == AppointmentStatus.COMPLETED.value


@pytest.mark.parametrize(
    "path",
    [
        [AppointmentStatus.COMPLETED],  # PENDING cannot skip to COMPLETED
        [AppointmentStatus.CANCELLED, AppointmentStatus.CONFIRMED],  # CANCELLED is terminal
        [AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED, AppointmentStatus.PENDING],
    ],
)
async def test_illegal_transitions_are_rejected(db, users, principals, window, path):
    appointment = await _book(db, principals["patient"], users["patient"], users["doctor"], window)
    *legal, illegal = path
    for step in legal:
        await appointments.update_appointment_status(db, principals["admin"], appointment.id, step)
    with pytest.raises(InvalidStatusTransitionError):
        await appointments.update_appointment_status(db, principals["admin"], appointment.id, illegal)


async def test_cancel_via_status_releases_window(db, users, principals, window):
    appointment = await _book(db, principals["patient"], users["patient"], users["doctor"], window)
    await appointments.update_appointment_status(
        db, principals["doctor"], appointment.id, AppointmentStatus.CANCELLED
    )
    assert await _is_available(db, window.id) is True


async def test_patient_cannot_set_status(db, users, principals, window):
    appointment = await _book(db, principals["patient"], users["patient"], users["doctor"], window)
    with pytest.raises(ForbiddenError):
        await appointments.update_appointment_status(
            db, principals["patient"], appointment.id, AppointmentStatus.CONFIRMED
        )


async def test_booked_times_skip_cancelled(db, users, principals, window):
    appointment = await _book(db, principals["patient"], users["patient"], users["doctor"], window, at=time(9, 30))
    assert (await schedules.booked_times(db, [window.id])) == {window.id: ["09:30"]}

    await appointments.cancel_appointment(db, principals["patient"], appointment.id)
    assert (await schedules.booked_times(db, [window.id])) == {window.id: []}


async def test_update_keeps_slot_inside_window(db, users, principals, window):
    appointment = await _book(db, principals["patient"], users["patient"], users["doctor"], window)

    moved = await appointments.update_appointment(
        db, principals["patient"], appointment.id, AppointmentUpdate(appointment_time=time(9, 45), reason="Follow-up")
    )
    assert moved.appointment_time == time(9, 45)
    assert moved.reason == "Follow-up"

    with pytest.raises(InvalidInputError):
        await appointments.update_appointment(
            db, principals["patient"], appointment.id, AppointmentUpdate(appointment_time=time(10, 15))
        )


async def test_booked_window_cannot_be_moved(db, users, principals, window):
    appointment = await _book(db, principals["patient"], users["patient"], users["doctor"], window)

    with pytest.raises(InvalidInputError):
        await schedules.update_schedule(
            db, principals["admin"], window.id, users["other_doctor"].id,
            date(2024, 7, 1), time(14, 0), time(15, 0),
        )
    with pytest.raises(InvalidInputError):
        await schedules.update_schedule(
            db, principals["doctor"], window.id, users["doctor"].id, CLINIC_DAY, time(9, 30), TEN
        )

    unchanged = await schedules.get_schedule(db, window.id)
    assert (unchanged.doctor_id, unchanged.date, unchanged.start_time) == (users["doctor"].id, CLINIC_DAY, NINE)
    kept = await appointments.get_appointment(db, principals["admin"], appointment.id)
    assert kept.doctor_id == unchanged.doctor_id


async def test_window_can_be_moved_after_cancellation(db, users, principals, window):
    appointment = await _book(db, principals["patient"], users["patient"], users["doctor"], window)
    await appointments.cancel_appointment(db, principals["patient"], appointment.id)

    moved = await schedules.update_schedule(
        db, principals["admin"], window.id, users["other_doctor"].id, date(2024, 7, 1), time(14, 0), time(15, 0)
    )
    assert moved.doctor_id == users["other_doctor"].id
    assert moved.date == date(2024, 7, 1)


async def test_listings_are_scoped_to_caller(db, users, principals, window):
    await _book(db, principals["patient"], users["patient"], users["doctor"], window)

    assert len(await appointments.list_my_appointments(db, principals["patient"])) == 1
    assert len(await appointments.list_my_appointments(db, principals["doctor"])) == 1
    assert await appointments.list_my_appointments(db, principals["other_patient"]) == []
    assert await appointments.list_by_date(db, principals["other_doctor"], CLINIC_DAY) == []
    assert len(await appointments.list_by_status(db, principals["admin"], AppointmentStatus.PENDING)) == 1
    with pytest.raises(ForbiddenError):
        await appointments.list_appointments(db, principals["patient"])
    with pytest.raises(ForbiddenError):
        await appointments.list_by_patient(db, principals["other_patient"], users["patient"].id)


async def test_is_own_appointment(db, users, principals, window):
    appointment = await _book(db, principals["patient"], users["patient"], users["doctor"], window)

    assert await appointments.is_own_appointment(db, appointment.id, principals["admin"]) is True
    assert await appointments.is_own_appointment(db, appointment.id, principals["patient"]) is True
    assert await appointments.is_own_appointment(db, appointment.id, principals["doctor"]) is True
    assert await appointments.is_own_appointment(db, appointment.id, principals["other_patient"]) is False
    assert await appointments.is_own_appointment(db, appointment.id, principals["other_doctor"]) is False
    assert await appointments.is_own_appointment(db, 9999, principals["admin"]) is False
