from typing import List

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from healthcare_portal.core.middleware import get_current_user, get_db
from healthcare_portal.core.policy import Principal
from healthcare_portal.db.crud import feedback as feedback_crud
from healthcare_portal.schemas.feedback import FeedbackOut, FeedbackRequest
from healthcare_portal.schemas.shared import ApiResponse

router = APIRouter(prefix="/feedback", tags=["feedback"])


def _out(items) -> List[FeedbackOut]:
    return [FeedbackOut.from_model(f) for f in items]


@router.post("", response_model=FeedbackOut, status_code=status.HTTP_201_CREATED)
async def create_feedback_route(
    body: FeedbackRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return FeedbackOut.from_model(await feedback_crud.create_feedback(db, current_user, body))


@router.get("", response_model=List[FeedbackOut])
async def list_feedback_route(
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await feedback_crud.list_feedback(db, current_user))


@router.get("/my-feedback", response_model=List[FeedbackOut])
async def my_feedback_route(
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await feedback_crud.list_my_feedback(db, current_user))


@router.get("/general", response_model=List[FeedbackOut])
async def general_feedback_route(
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await feedback_crud.list_general_feedback(db, current_user))


@router.get("/doctor-specific", response_model=List[FeedbackOut])
async def doctor_specific_feedback_route(
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await feedback_crud.list_doctor_specific_feedback(db, current_user))


@router.get("/doctor/{doctor_id}", response_model=List[FeedbackOut])
async def doctor_feedback_route(
    doctor_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await feedback_crud.list_by_doctor(db, doctor_id))


@router.get("/rating/{rating}", response_model=List[FeedbackOut])
async def feedback_by_rating_route(
    rating: int = Path(..., ge=1, le=5),
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return _out(await feedback_crud.list_by_rating(db, current_user, rating))


@router.get("/{feedback_id}", response_model=FeedbackOut)
async def get_feedback_route(
    feedback_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return FeedbackOut.from_model(await feedback_crud.get_feedback(db, feedback_id))


@router.put("/{feedback_id}", response_model=FeedbackOut)
async def update_feedback_route(
    feedback_id: int,
    body: FeedbackRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    return FeedbackOut.from_model(await feedback_crud.update_feedback(db, current_user, feedback_id, body))


@router.delete("/{feedback_id}", response_model=ApiResponse)
async def delete_feedback_route(
    feedback_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    await feedback_crud.delete_feedback(db, current_user, feedback_id)
    return ApiResponse(success=True, message="Feedback deleted successfully")
