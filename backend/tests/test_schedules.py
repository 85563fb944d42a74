# tests/test_schedules.py
from datetime import time

import pytest

from healthcare_portal.core.exceptions import (
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    ScheduleAlreadyBookedError,
    TimeConflictError,
)
from healthcare_portal.db.crud import schedule as schedules
from tests._helpers import CLINIC_DAY, ELEVEN, NINE, TEN


async def _open(db, actor, doctor_id, start, end, on_date=CLINIC_DAY):
    return await schedules.create_schedule(db, actor, doctor_id, on_date, start, end)


async def test_create_schedule_is_available(db, users, principals):
    schedule = await _open(db, principals["doctor"], users["doctor"].id, NINE, TEN)
    assert schedule.is_available is True
    assert schedule.doctor.full_name == "Dana House"


@pytest.mark.parametrize(
    "start, end",
    [
        (time(9, 30), time(10, 30)),  # partial overlap at the end
        (time(8, 30), time(9, 30)),  # partial overlap at the start
        (time(9, 15), time(9, 45)),  # contained
        (time(8, 0), time(11, 0)),  # containing
        (NINE, TEN),  # identical
    ],
)
async def test_overlapping_schedule_conflicts(db, users, principals, start, end):
    await _open(db, principals["doctor"], users["doctor"].id, NINE, TEN)
    with pytest.raises(TimeConflictError):
        await _open(db, principals["doctor"], users["doctor"].id, start, end)


async def test_touching_windows_do_not_conflict(db, users, principals):
    doctor_id = users["doctor"].id
    await _open(db, principals["doctor"], doctor_id, NINE, TEN)
    await _open(db, principals["doctor"], doctor_id, TEN, ELEVEN)
    await _open(db, principals["doctor"], doctor_id, time(8, 0), NINE)
    assert len(await schedules.list_doctor_schedules(db, doctor_id)) == 3


async def test_overlap_is_per_doctor(db, users, principals):
    await _open(db, principals["admin"], users["doctor"].id, NINE, TEN)
    other = await _open(db, principals["admin"], users["other_doctor"].id, NINE, TEN)
    assert other.doctor_id == users["other_doctor"].id


async def test_create_requires_start_before_end(db, users, principals):
    with pytest.raises(InvalidInputError):
        await _open(db, principals["doctor"], users["doctor"].id, TEN, NINE)


async def test_create_for_unknown_doctor(db, users, principals):
    with pytest.raises(NotFoundError):
        await _open(db, principals["admin"], users["patient"].id, NINE, TEN)


async def test_doctor_cannot_create_for_colleague(db, users, principals):
    with pytest.raises(ForbiddenError):
        await _open(db, principals["doctor"], users["other_doctor"].id, NINE, TEN)


async def test_update_ignores_own_interval(db, users, principals):
    schedule = await _open(db, principals["doctor"], users["doctor"].id, NINE, TEN)
    updated = await schedules.update_schedule(
        db, principals["doctor"], schedule.id, users["doctor"].id, CLINIC_DAY, time(9, 30), time(10, 30)
    )
    assert updated.start_time == time(9, 30)
    assert updated.end_time == time(10, 30)


async def test_update_conflicts_with_other_window(db, users, principals):
    doctor_id = users["doctor"].id
    first = await _open(db, principals["doctor"], doctor_id, NINE, TEN)
    await _open(db, principals["doctor"], doctor_id, TEN, ELEVEN)
    with pytest.raises(TimeConflictError):
        await schedules.update_schedule(
            db, principals["doctor"], first.id, doctor_id, CLINIC_DAY, NINE, time(10, 30)
        )


async def test_update_missing_schedule(db, users, principals):
    with pytest.raises(NotFoundError):
        await schedules.update_schedule(
            db, principals["admin"], 999, users["doctor"].id, CLINIC_DAY, NINE, TEN
        )


async def test_delete_my_schedule_hides_other_doctors_windows(db, users, principals):
    schedule = await _open(db, principals["doctor"], users["doctor"].id, NINE, TEN)
    with pytest.raises(NotFoundError):
        await schedules.delete_my_schedule(db, principals["other_doctor"], schedule.id)

    await schedules.delete_my_schedule(db, principals["doctor"], schedule.id)
    assert await schedules.list_my_schedules(db, principals["doctor"]) == []


async def test_delete_schedule_is_admin_only(db, users, principals):
    schedule = await _open(db, principals["doctor"], users["doctor"].id, NINE, TEN)
    with pytest.raises(ForbiddenError):
        await schedules.delete_schedule(db, principals["doctor"], schedule.id)
    await schedules.delete_schedule(db, principals["admin"], schedule.id)
    with pytest.raises(NotFoundError):
        await schedules.get_schedule(db, schedule.id)


async def test_book_schedule_flips_availability_once(db, users, principals):
    schedule = await _open(db, principals["doctor"], users["doctor"].id, NINE, TEN)

    booked = await schedules.book_schedule(db, principals["patient"], schedule.id)
    assert booked.is_available is False

    with pytest.raises(ScheduleAlreadyBookedError):
        await schedules.book_schedule(db, principals["other_patient"], schedule.id)


async def test_book_unknown_schedule(db, users, principals):
    with pytest.raises(NotFoundError):
        await schedules.book_schedule(db, principals["patient"], 12345)


async def test_find_available_excludes_booked(db, users, principals):
    doctor_id = users["doctor"].id
    first = await _open(db, principals["doctor"], doctor_id, NINE, TEN)
    second = await _open(db, principals["doctor"], doctor_id, TEN, ELEVEN)
    await schedules.book_schedule(db, principals["patient"], first.id)

    available = await schedules.find_available_schedules(db, CLINIC_DAY)
    assert [s.id for s in available] == [second.id]
