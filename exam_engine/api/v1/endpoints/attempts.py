# exam_engine/api/v1/endpoints/attempts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from exam_engine.core.clock import as_utc
from exam_engine.core.security import get_current_user
from exam_engine.db.session import get_db
from exam_engine.models.user import User
from exam_engine.schemas.attempt import (
    AnswersPayload,
    AttemptStartRequest,
    AttemptStartResponse,
    DraftSaved,
    SubmitResult,
    TimerState,
)
from exam_engine.schemas.exam import ExamPublic
from exam_engine.services import release_service, session_service

router = APIRouter(prefix="/attempts", tags=["attempts"])


@router.post("/", response_model=AttemptStartResponse)
def start_or_resume_attempt(
    obj_in: AttemptStartRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Start an attempt, or resume the one already in progress.
    The exam snapshot never carries correct answers.
    """
    start = session_service.start_or_resume(db, user=current_user, exam_id=obj_in.exam_id)
    sub = start.submission
    return AttemptStartResponse(
        submission_id=sub.id,
        exam=ExamPublic.model_validate(start.exam),
        started_at=as_utc(sub.started_at),
        resumed=start.resumed,
        answers_draft=sub.answers_draft or {},
        remaining_seconds=start.remaining_seconds,
        deadline=start.deadline,
    )


@router.put("/{submission_id}/draft", response_model=DraftSaved)
def save_draft(
    submission_id: int,
    obj_in: AnswersPayload,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = session_service.save_draft(
        db, user=current_user, submission_id=submission_id, answers=obj_in.answers or {}
    )
    return DraftSaved(saved=result.saved, saved_at=result.saved_at)


@router.post("/{submission_id}/submit", response_model=SubmitResult)
def submit_attempt(
    submission_id: int,
    obj_in: AnswersPayload,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Final submit. Sending the same submission id again returns the stored result.
    """
    sub = session_service.submit(
        db, user=current_user, submission_id=submission_id, answers=obj_in.answers
    )
    visible = release_service.can_view_results(sub, current_user)
    return SubmitResult(
        submission_id=sub.id,
        status=sub.status,
        results_released=sub.results_released,
        score=sub.score if visible else None,
        total_points=sub.total_points if visible else None,
        is_late=sub.is_late,
    )


@router.get("/{submission_id}/timer", response_model=TimerState)
def get_timer(
    submission_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return session_service.get_timer(db, user=current_user, submission_id=submission_id)
