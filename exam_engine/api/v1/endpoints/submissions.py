# exam_engine/api/v1/endpoints/submissions.py
from typing import List, Union

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from exam_engine.core.security import get_current_user
from exam_engine.db.session import get_db
from exam_engine.models.user import User
from exam_engine.schemas.submission import SubmissionDetail, SubmissionPublic
from exam_engine.services import release_service, submission_service

router = APIRouter(prefix="/submissions", tags=["submissions"])


@router.get("/me", response_model=List[Union[SubmissionDetail, SubmissionPublic]])
def list_my_submissions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    skip: int = 0,
    limit: int = 100,
):
    """
    Candidate history; each entry is redacted until its result is released.
    """
    subs = submission_service.list_submissions_for_user(
        db, user=current_user, skip=skip, limit=limit
    )
    return [release_service.submission_view(sub, current_user) for sub in subs]


@router.get("/{submission_id}", response_model=Union[SubmissionDetail, SubmissionPublic])
def get_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    sub = submission_service.get_owned_submission(db, submission_id, current_user)
    return release_service.submission_view(sub, current_user)
