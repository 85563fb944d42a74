# healthcare_portal/db/crud/feedback.py
import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from healthcare_portal.config.constants import Role
from healthcare_portal.core.exceptions import NotFoundError
from healthcare_portal.core.policy import Action, Principal, Target, authorize
from healthcare_portal.db.crud.user import get_user_with_role, with_doctor_details
from healthcare_portal.db.models import FeedbackModel
from healthcare_portal.schemas.feedback import FeedbackRequest

logger = logging.getLogger(__name__)

FEEDBACK_LOAD_OPTIONS = (
    selectinload(FeedbackModel.patient),
    with_doctor_details(FeedbackModel.doctor),
)


async def _fetch(db: AsyncSession, feedback_id: int) -> FeedbackModel:
    query = (
        select(FeedbackModel)
        .options(*FEEDBACK_LOAD_OPTIONS)
        .where(FeedbackModel.id == feedback_id)
        .execution_options(populate_existing=True)
    )
    feedback = (await db.execute(query)).scalar_one_or_none()
    if feedback is None:
        raise NotFoundError(f"Feedback not found with id: {feedback_id}")
    return feedback


async def _list(db: AsyncSession, *criteria) -> List[FeedbackModel]:
    query = (
        select(FeedbackModel)
        .options(*FEEDBACK_LOAD_OPTIONS)
        .where(*criteria)
        .order_by(FeedbackModel.submitted_at.desc(), FeedbackModel.id.desc())
        .execution_options(populate_existing=True)
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def _check_doctor(db: AsyncSession, doctor_id: Optional[int]) -> None:
    if doctor_id is not None:
        await get_user_with_role(db, doctor_id, Role.DOCTOR)


async def create_feedback(db: AsyncSession, actor: Principal, data: FeedbackRequest) -> FeedbackModel:
    authorize(actor, Action.FEEDBACK_CREATE, Target(patient_id=actor.user_id))
    await _check_doctor(db, data.doctor_id)

    feedback = FeedbackModel(
        patient_id=actor.user_id,
        doctor_id=data.doctor_id,
        rating=data.rating,
        comments=data.comments,
    )
    db.add(feedback)
    await db.commit()
    logger.info(f"Feedback id={feedback.id} submitted by patient_id={actor.user_id}")
    return await _fetch(db, feedback.id)


async def update_feedback(
    db: AsyncSession, actor: Principal, feedback_id: int, data: FeedbackRequest
) -> FeedbackModel:
    feedback = await _fetch(db, feedback_id)
    authorize(actor, Action.FEEDBACK_UPDATE, feedback)
    await _check_doctor(db, data.doctor_id)

    feedback.doctor_id = data.doctor_id
    feedback.rating = data.rating
    feedback.comments = data.comments
    await db.commit()
    logger.info(f"Feedback id={feedback_id} updated")
    return await _fetch(db, feedback_id)


async def delete_feedback(db: AsyncSession, actor: Principal, feedback_id: int) -> None:
    feedback = await _fetch(db, feedback_id)
    authorize(actor, Action.FEEDBACK_DELETE, feedback)
    await db.execute(delete(FeedbackModel).where(FeedbackModel.id == feedback_id))
    await db.commit()
    logger.info(f"Feedback id={feedback_id} deleted by user id={actor.user_id}")


async def get_feedback(db: AsyncSession, feedback_id: int) -> FeedbackModel:
    return await _fetch(db, feedback_id)


async def list_feedback(db: AsyncSession, actor: Principal) -> List[FeedbackModel]:
    authorize(actor, Action.FEEDBACK_LIST_ALL)
    return await _list(db)


async def list_by_doctor(db: AsyncSession, doctor_id: int) -> List[FeedbackModel]:
    return await _list(db, FeedbackModel.doctor_id == doctor_id)


async def list_by_rating(db: AsyncSession, actor: Principal, rating: int) -> List[FeedbackModel]:
    """Admins see every entry with the rating, doctors only the ones about them."""
    authorize(actor, Action.FEEDBACK_LIST_BY_RATING)
    criteria = [FeedbackModel.rating == rating]
    if actor.role == Role.DOCTOR:
        criteria.append(FeedbackModel.doctor_id == actor.user_id)
    return await _list(db, *criteria)


async def list_my_feedback(db: AsyncSession, actor: Principal) -> List[FeedbackModel]:
    if actor.is_admin:
        return await _list(db)
    if actor.role == Role.DOCTOR:
        return await _list(db, FeedbackModel.doctor_id == actor.user_id)
    return await _list(db, FeedbackModel.patient_id == actor.user_id)


async def list_general_feedback(db: AsyncSession, actor: Principal) -> List[FeedbackModel]:
    """Feedback not tied to a doctor. Patients only see their own."""
    criteria = [FeedbackModel.doctor_id.is_(None)]
    if actor.role == Role.PATIENT:
        criteria.append(FeedbackModel.patient_id == actor.user_id)
    return await _list(db, *criteria)


async def list_doctor_specific_feedback(db: AsyncSession, actor: Principal) -> List[FeedbackModel]:
    criteria = [FeedbackModel.doctor_id.is_not(None)]
    if actor.role == Role.PATIENT:
        criteria.append(FeedbackModel.patient_id == actor.user_id)
    elif actor.role == Role.DOCTOR:
        criteria.append(FeedbackModel.doctor_id == actor.user_id)
    return await _list(db, *criteria)
