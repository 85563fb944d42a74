from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from healthcare_portal.core.middleware import get_current_user, get_db
from healthcare_portal.core.policy import Principal
from healthcare_portal.db.crud import department as departments
from healthcare_portal.db.crud.user import list_doctors
from healthcare_portal.schemas.department import DepartmentOut, DepartmentRequest
from healthcare_portal.schemas.shared import ApiResponse, UserOut

router = APIRouter(prefix="/departments", tags=["departments"])


# Department reads are public
@router.get("", response_model=List[DepartmentOut])
async def list_departments_route(db: AsyncSession = Depends(get_db)):
    return await departments.list_departments(db)


@router.get("/{department_id}", response_model=DepartmentOut)
async def get_department_route(department_id: int, db: AsyncSession = Depends(get_db)):
    return await departments.get_department(db, department_id)


@router.get("/{department_id}/doctors", response_model=List[UserOut])
async def department_doctors_route(department_id: int, db: AsyncSession = Depends(get_db)):
    await departments.get_department(db, department_id)
    return [UserOut.from_model(u) for u in await list_doctors(db, department_id)]


@router.post("", response_model=DepartmentOut, status_code=status.HTTP_201_CREATED)
async def create_department_route(
    body: DepartmentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return await departments.create_department(db, current_user, body)


@router.put("/{department_id}", response_model=DepartmentOut)
async def update_department_route(
    department_id: int,
    body: DepartmentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return await departments.update_department(db, current_user, department_id, body)


@router.delete("/{department_id}", response_model=ApiResponse)
async def delete_department_route(
    department_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    await departments.delete_department(db, current_user, department_id)
    return ApiResponse(success=True, message="Department deleted successfully")
