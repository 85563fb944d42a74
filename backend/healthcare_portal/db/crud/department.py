# healthcare_portal/db/crud/department.py
import logging
from typing import List

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from healthcare_portal.core.exceptions import AlreadyExistsError, NotFoundError
from healthcare_portal.core.policy import Action, Principal, authorize
from healthcare_portal.db.models import DepartmentModel, DoctorModel
from healthcare_portal.schemas.department import DepartmentRequest

logger = logging.getLogger(__name__)


async def get_department(db: AsyncSession, department_id: int) -> DepartmentModel:
    department = await db.get(DepartmentModel, department_id)
    if department is None:
        raise NotFoundError(f"Department not found with id: {department_id}")
    return department


async def list_departments(db: AsyncSession) -> List[DepartmentModel]:
    result = await db.execute(select(DepartmentModel).order_by(DepartmentModel.name))
    return list(result.scalars().all())


async def _check_name_free(db: AsyncSession, name: str, exclude_id: int | None = None) -> None:
    query = select(DepartmentModel.id).where(DepartmentModel.name == name)
    if exclude_id is not None:
        query = query.where(DepartmentModel.id != exclude_id)
    if (await db.execute(query)).scalar_one_or_none() is not None:
        raise AlreadyExistsError(f"Department '{name}' already exists")


async def _commit(db: AsyncSession, name: str) -> None:
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise AlreadyExistsError(f"Department '{name}' already exists")


async def create_department(db: AsyncSession, actor: Principal, data: DepartmentRequest) -> DepartmentModel:
    authorize(actor, Action.DEPARTMENT_MANAGE)
    await _check_name_free(db, data.name)
    department = DepartmentModel(name=data.name, description=data.description)
    db.add(department)
    await _commit(db, data.name)
    logger.info(f"Created department id={department.id} '{department.name}'")
    return department


async def update_department(
    db: AsyncSession, actor: Principal, department_id: int, data: DepartmentRequest
) -> DepartmentModel:
    authorize(actor, Action.DEPARTMENT_MANAGE)
    department = await get_department(db, department_id)
    await _check_name_free(db, data.name, exclude_id=department_id)
    department.name = data.name
    department.description = data.description
    await _commit(db, data.name)
    logger.info(f"Updated department id={department_id}")
    return department


async def delete_department(db: AsyncSession, actor: Principal, department_id: int) -> None:
    """Doctors in the department are left without one."""
    authorize(actor, Action.DEPARTMENT_MANAGE)
    await get_department(db, department_id)
    await db.execute(
        update(DoctorModel)
        .where(DoctorModel.department_id == department_id)
        .values(department_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.execute(delete(DepartmentModel).where(DepartmentModel.id == department_id))
    await db.commit()
    logger.info(f"Deleted department id={department_id}")
