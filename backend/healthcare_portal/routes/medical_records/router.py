from datetime import date
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from healthcare_portal.core.middleware import get_current_user, get_db
from healthcare_portal.core.policy import Principal
from healthcare_portal.db.crud import medical_record as records
from healthcare_portal.schemas.medical_record import (
    MedicalRecordOut,
    MedicalRecordRequest,
    MedicalRecordUpdate,
)
from healthcare_portal.schemas.shared import ApiResponse

router = APIRouter(prefix="/medical-records", tags=["medical-records"])


def _out(items) -> List[MedicalRecordOut]:
    return [MedicalRecordOut.from_model(r) for r in items]


@router.post("", response_model=MedicalRecordOut, status_code=status.HTTP_201_CREATED)
async def create_record_route(
    body: MedicalRecordRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    """Record the visit and mark the appointment completed."""
    return MedicalRecordOut.from_model(await records.create_medical_record(db, current_user, body))


@router.get("", response_model=List[MedicalRecordOut])
async def list_records_route(
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await records.list_medical_records(db, current_user))


@router.get("/my-records", response_model=List[MedicalRecordOut])
async def my_records_route(
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await records.list_my_medical_records(db, current_user))


@router.get("/patient/{patient_id}", response_model=List[MedicalRecordOut])
async def patient_records_route(
    patient_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await records.list_by_patient(db, current_user, patient_id))


@router.get("/doctor/{doctor_id}", response_model=List[MedicalRecordOut])
async def doctor_records_route(
    doctor_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await records.list_by_doctor(db, current_user, doctor_id))


@router.get("/date/{on_date}", response_model=List[MedicalRecordOut])
async def records_by_date_route(
    on_date: date,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await records.list_by_date(db, current_user, on_date))


@router.get("/{record_id}", response_model=MedicalRecordOut)
async def get_record_route(
    record_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return MedicalRecordOut.from_model(await records.get_medical_record(db, current_user, record_id))


@router.put("/{record_id}", response_model=MedicalRecordOut)
async def update_record_route(
    record_id: int,
    body: MedicalRecordUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return MedicalRecordOut.from_model(await records.update_medical_record(db, current_user, record_id, body))


@router.delete("/{record_id}", response_model=ApiResponse)
async def delete_record_route(
    record_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    await records.delete_medical_record(db, current_user, record_id)
    return ApiResponse(success=True, message="Medical record deleted successfully")
