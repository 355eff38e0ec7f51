# exam_engine/api/v1/endpoints/scores.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from exam_engine.core.security import get_current_admin
from exam_engine.db.session import get_db
from exam_engine.models.submission import Submission
from exam_engine.models.user import User
from exam_engine.schemas.score import (
    ManualGradeRequest,
    ManualGradeResult,
    PendingReview,
    RegradeReport,
    RegradeRequest,
    SingleRegradeResult,
)
from exam_engine.services import scoring_service

router = APIRouter(prefix="/scores", tags=["scores"])


def _submission_to_pending(sub: Submission) -> PendingReview:
    return PendingReview(
        submission_id=sub.id,
        exam_id=sub.exam_id,
        user_id=sub.user_id,
        submitted_at=sub.submitted_at,
        score=sub.score,
        status=sub.status,
    )


@router.get("/pending", response_model=List[PendingReview])
def list_pending_reviews(
    exam_id: int | None = None,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
    skip: int = 0,
    limit: int = 100,
):
    subs = scoring_service.list_pending_review(db, exam_id=exam_id, skip=skip, limit=limit)
    return [_submission_to_pending(sub) for sub in subs]


@router.post("/regrade", response_model=RegradeReport)
def regrade_all(
    obj_in: RegradeRequest | None = None,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    """
    Re-run grading over every submitted attempt (or one exam's).
    Manual subjective scores are kept; only changed records are written.
    """
    report = scoring_service.regrade_all(db, exam_id=obj_in.exam_id if obj_in else None)
    return RegradeReport(
        examined=report.examined,
        updated_count=report.updated_count,
        failed_count=report.failed_count,
    )


@router.post("/{submission_id}/regrade", response_model=SingleRegradeResult)
def regrade_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    outcome = scoring_service.regrade_one(db, submission_id=submission_id)
    return SingleRegradeResult(
        submission_id=outcome.submission.id,
        changed=outcome.changed,
        score=outcome.submission.score,
        status=outcome.submission.status,
    )


@router.post("/{submission_id}/questions/{question_id}", response_model=ManualGradeResult)
def manual_grade(
    submission_id: int,
    question_id: int,
    obj_in: ManualGradeRequest,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    sub = scoring_service.manual_grade(
        db,
        submission_id=submission_id,
        question_id=question_id,
        score=obj_in.score,
        feedback=obj_in.feedback,
        grader=current_admin,
    )
    return ManualGradeResult(
        submission_id=sub.id,
        question_id=question_id,
        score=sub.score,
        status=sub.status,
    )
