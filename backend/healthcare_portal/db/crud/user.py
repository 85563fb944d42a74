# healthcare_portal/db/crud/user.py
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from healthcare_portal.config.constants import Role
from healthcare_portal.core.auth import get_password_hash
from healthcare_portal.core.exceptions import AlreadyExistsError, InvalidInputError, NotFoundError
from healthcare_portal.core.policy import Action, Principal, Target, authorize
from healthcare_portal.db.models import DepartmentModel, DoctorModel, PatientModel, UserModel
from healthcare_portal.schemas.auth import SignUpRequest
from healthcare_portal.schemas.user import UserProfileUpdate

logger = logging.getLogger(__name__)

USER_LOAD_OPTIONS = (
    selectinload(UserModel.patient_profile),
    selectinload(UserModel.doctor_profile).selectinload(DoctorModel.department),
)


def with_doctor_details(relationship_attr):
    """Loader for a UserModel relationship that also pulls the doctor profile and department."""
    return (
        selectinload(relationship_attr)
        .selectinload(UserModel.doctor_profile)
        .selectinload(DoctorModel.department)
    )


async def get_user(db: AsyncSession, user_id: int) -> Optional[UserModel]:
    """
    Get a user by ID with their profiles loaded.

    Args:
        db: Database session
        user_id: User ID

    Returns:
        UserModel or None if not found
    """
    query = (
        select(UserModel)
        .options(*USER_LOAD_OPTIONS)
        .where(UserModel.id == user_id)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[UserModel]:
    """
    Get a user by email with their profiles loaded.

    Args:
        db: Database session
        email: User's email address

    Returns:
        UserModel or None if not found
    """
    query = select(UserModel).options(*USER_LOAD_OPTIONS).where(UserModel.email == email)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_user_with_role(db: AsyncSession, user_id: int, role: Role) -> UserModel:
    """Fetch a user that must exist and hold ``role``; raises NotFoundError otherwise."""
    user = await get_user(db, user_id)
    if user is None or user.role != role.value:
        raise NotFoundError(f"{role.value.capitalize()} not found with id: {user_id}")
    return user


async def _ensure_department(db: AsyncSession, department_id: Optional[int]) -> None:
    if department_id is None:
        return
    if await db.get(DepartmentModel, department_id) is None:
        raise NotFoundError(f"Department not found with id: {department_id}")


async def create_user(db: AsyncSession, data: SignUpRequest) -> UserModel:
    """Insert user and its role profile in one transaction."""
    if await get_user_by_email(db, data.email) is not None:
        raise AlreadyExistsError("Email already registered")

    user = UserModel(
        email=data.email,
        password_hash=get_password_hash(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        phone_number=data.phone_number,
        role=data.role.value,
    )
    db.add(user)

    if data.role == Role.PATIENT:
        profile = data.patient_profile.model_dump() if data.patient_profile else {}
        db.add(PatientModel(user=user, **profile))
    elif data.role == Role.DOCTOR:
        profile = data.doctor_profile.model_dump() if data.doctor_profile else {}
        await _ensure_department(db, profile.get("department_id"))
        db.add(DoctorModel(user=user, **profile))

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning(f"Registration rejected for {data.email}: duplicate email or license number")
        raise AlreadyExistsError("Email or license number already registered")

    logger.info(f"Created {data.role.value} user id={user.id}")
    return await get_user(db, user.id)


async def list_users(
    db: AsyncSession,
    actor: Principal,
    role: Optional[Role] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[UserModel]:
    """
    Get a list of users with optional filtering by role. Admin only.

    Args:
        db: Database session
        actor: The calling principal
        role: Filter by user role (optional)
        skip: Number of records to skip
        limit: Maximum number of records to return
    """
    authorize(actor, Action.USER_MANAGE)
    query = select(UserModel).options(*USER_LOAD_OPTIONS).order_by(UserModel.id)
    if role:
        query = query.where(UserModel.role == role.value)
    query = query.offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_doctors(db: AsyncSession, department_id: Optional[int] = None) -> List[UserModel]:
    """Public doctor directory, optionally narrowed to one department."""
    query = (
        select(UserModel)
        .options(*USER_LOAD_OPTIONS)
        .where(UserModel.role == Role.DOCTOR.value)
        .order_by(UserModel.last_name, UserModel.first_name)
    )
    if department_id is not None:
        query = query.join(DoctorModel, DoctorModel.user_id == UserModel.id).where(
            DoctorModel.department_id == department_id
        )
    result = await db.execute(query)
    return list(result.scalars().all())


async def view_user(db: AsyncSession, actor: Principal, user_id: int) -> UserModel:
    authorize(actor, Action.USER_VIEW, Target(user_id=user_id))
    user = await get_user(db, user_id)
    if user is None:
        raise NotFoundError(f"User not found with id: {user_id}")
    return user


async def update_profile(
    db: AsyncSession, actor: Principal, user_id: int, data: UserProfileUpdate
) -> UserModel:
    """Apply the fields that were sent. Role-specific sections must match the user's role."""
    authorize(actor, Action.USER_UPDATE, Target(user_id=user_id))
    user = await get_user(db, user_id)
    if user is None:
        raise NotFoundError(f"User not found with id: {user_id}")

    changes = data.model_dump(exclude_unset=True, exclude={"patient_profile", "doctor_profile"})
    for field, value in changes.items():
        setattr(user, field, value)

    if data.patient_profile is not None:
        if user.role != Role.PATIENT.value:
            raise InvalidInputError("patient_profile can only be updated for patients")
        if user.patient_profile is None:
            user.patient_profile = PatientModel()
        for field, value in data.patient_profile.model_dump(exclude_unset=True).items():
            setattr(user.patient_profile, field, value)

    if data.doctor_profile is not None:
        if user.role != Role.DOCTOR.value:
            raise InvalidInputError("doctor_profile can only be updated for doctors")
        profile_changes = data.doctor_profile.model_dump(exclude_unset=True)
        if "department_id" in profile_changes:
            await _ensure_department(db, profile_changes["department_id"])
        if user.doctor_profile is None:
            user.doctor_profile = DoctorModel()
        for field, value in profile_changes.items():
            setattr(user.doctor_profile, field, value)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise AlreadyExistsError("License number already registered")

    logger.info(f"User id={user_id} updated by user id={actor.user_id}")
    return await get_user(db, user_id)


async def delete_user(db: AsyncSession, actor: Principal, user_id: int) -> None:
    authorize(actor, Action.USER_MANAGE)
    user = await get_user(db, user_id)
    if user is None:
        raise NotFoundError(f"User not found with id: {user_id}")
    if user.id == actor.user_id:
        raise InvalidInputError("Administrators cannot delete their own account")

    await db.delete(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning(f"Refused to delete user id={user_id}: still referenced")
        raise InvalidInputError("User still has appointments or records and cannot be deleted")
    logger.info(f"User id={user_id} deleted by admin id={actor.user_id}")


async def set_password(db: AsyncSession, user: UserModel, new_password: str) -> None:
    user.password_hash = get_password_hash(new_password)
    await db.commit()
    logger.info(f"Password updated for user id={user.id}")
