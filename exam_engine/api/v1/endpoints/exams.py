# exam_engine/api/v1/endpoints/exams.py
from typing import Union

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from exam_engine.core.errors import NotFoundError
from exam_engine.core.security import get_current_admin, get_current_user
from exam_engine.db.session import get_db
from exam_engine.models.user import User
from exam_engine.schemas.exam import DurationUpdate, ExamCreate, ExamDetail, ExamPublic
from exam_engine.services import exam_service

router = APIRouter(prefix="/exams", tags=["exams"])


@router.post("/", response_model=ExamDetail, status_code=status.HTTP_201_CREATED)
def create_exam(
    obj_in: ExamCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return exam_service.create_exam(db, author=current_admin, obj_in=obj_in)


@router.get("/{exam_id}", response_model=Union[ExamDetail, ExamPublic])
def get_exam(
    exam_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Candidates get the published exam without correct answers; open sessions
    also poll this (or the attempt timer) for duration changes.
    """
    exam = exam_service.get_exam_or_404(db, exam_id)
    if current_user.is_admin:
        return ExamDetail.model_validate(exam)
    if not exam.published:
        raise NotFoundError(f"exam {exam_id} not found")
    return ExamPublic.model_validate(exam)


@router.post("/{exam_id}/publish", response_model=ExamDetail)
def publish_exam(
    exam_id: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return exam_service.publish_exam(db, exam_id=exam_id)


@router.patch("/{exam_id}/duration", response_model=ExamDetail)
def update_duration(
    exam_id: int,
    obj_in: DurationUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return exam_service.update_duration(
        db, exam_id=exam_id, duration_minutes=obj_in.duration_minutes
    )
