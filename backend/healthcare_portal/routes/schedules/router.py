from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from healthcare_portal.core.middleware import get_current_user, get_db
from healthcare_portal.core.policy import Principal
from healthcare_portal.db.crud import schedule as schedules
from healthcare_portal.schemas.schedule import ScheduleOut, ScheduleRequest
from healthcare_portal.schemas.shared import ApiResponse

router = APIRouter(prefix="/doctor-schedules", tags=["doctor-schedules"])


async def _enriched(db: AsyncSession, items) -> List[ScheduleOut]:
    return [ScheduleOut.from_model(s, times) for s, times in await schedules.with_booked_times(db, items)]


@router.post("", response_model=ScheduleOut, status_code=status.HTTP_201_CREATED)
async def create_schedule_route(
    body: ScheduleRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    schedule = await schedules.create_schedule(
        db, current_user, body.doctor_id, body.date, body.start_time, body.end_time
    )
    return ScheduleOut.from_model(schedule)


@router.get("", response_model=List[ScheduleOut])
async def list_schedules_route(
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return await _enriched(db, await schedules.list_schedules(db))


@router.get("/available", response_model=List[ScheduleOut])
async def available_schedules_route(
    on_date: date = Query(..., alias="date"),
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    """Open windows on a date, with the start times already taken inside each."""
    return await _enriched(db, await schedules.find_available_schedules(db, on_date))


@router.get("/my-schedules", response_model=List[ScheduleOut])
async def my_schedules_route(
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return await _enriched(db, await schedules.list_my_schedules(db, current_user))


@router.get("/doctor/{doctor_id}", response_model=List[ScheduleOut])
async def doctor_schedules_route(
    doctor_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return await _enriched(db, await schedules.list_doctor_schedules(db, doctor_id))


@router.get("/{schedule_id}", response_model=ScheduleOut)
async def get_schedule_route(
    schedule_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    schedule = await schedules.get_schedule(db, schedule_id)
    return (await _enriched(db, [schedule]))[0]


@router.put("/{schedule_id}", response_model=ScheduleOut)
async def update_schedule_route(
    schedule_id: int,
    body: ScheduleRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    schedule = await schedules.update_schedule(
        db, current_user, schedule_id, body.doctor_id, body.date, body.start_time, body.end_time
    )
    return (await _enriched(db, [schedule]))[0]


@router.post("/{schedule_id}/book", response_model=ScheduleOut)
async def book_schedule_route(
    schedule_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    schedule = await schedules.book_schedule(db, current_user, schedule_id)
    return (await _enriched(db, [schedule]))[0]


@router.delete("/my-schedules/{schedule_id}", response_model=ApiResponse)
async def delete_my_schedule_route(
    schedule_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    await schedules.delete_my_schedule(db, current_user, schedule_id)
    return ApiResponse(success=True, message="Schedule deleted successfully")


@router.delete("/{schedule_id}", response_model=ApiResponse)
async def delete_schedule_route(
    schedule_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    await schedules.delete_schedule(db, current_user, schedule_id)
    return ApiResponse(success=True, message="Schedule deleted successfully")
