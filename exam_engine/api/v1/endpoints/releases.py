# exam_engine/api/v1/endpoints/releases.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from exam_engine.core.security import get_current_admin
from exam_engine.db.session import get_db
from exam_engine.models.user import User
from exam_engine.schemas.release import ReleaseCount, ReleaseState, ReleaseToggle
from exam_engine.services import exam_service, release_service

router = APIRouter(prefix="/releases", tags=["releases"])


@router.put("/submissions/{submission_id}", response_model=ReleaseState)
def release_one(
    submission_id: int,
    obj_in: ReleaseToggle,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    """
    Release (or, for corrections, hide again) one submission's result.
    """
    sub = release_service.release_submission(
        db, submission_id=submission_id, release=obj_in.release
    )
    return ReleaseState(submission_id=sub.id, results_released=sub.results_released)


@router.post("/exams/{exam_id}", response_model=ReleaseCount)
def release_exam(
    exam_id: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    exam_service.get_exam_or_404(db, exam_id)
    return ReleaseCount(released_count=release_service.release_exam(db, exam_id=exam_id))


@router.post("/delayed", response_model=ReleaseCount)
def release_delayed(
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return ReleaseCount(released_count=release_service.release_delayed(db))


@router.post("/sweep", response_model=ReleaseCount)
def release_due_sweep(
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    """Release every SCHEDULED exam whose release time has passed."""
    return ReleaseCount(released_count=release_service.release_due_sweep(db))
