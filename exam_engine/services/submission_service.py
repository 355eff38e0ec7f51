# exam_engine/services/submission_service.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from exam_engine.core.errors import ForbiddenError, NotFoundError
from exam_engine.models.submission import ACTIVE, Submission, SubmissionStatus
from exam_engine.models.user import User


def get_submission(db: Session, submission_id: int) -> Optional[Submission]:
    return db.query(Submission).filter(Submission.id == submission_id).first()


def get_submission_or_404(db: Session, submission_id: int) -> Submission:
    submission = get_submission(db, submission_id)
    if submission is None:
        raise NotFoundError(f"submission {submission_id} not found")
    return submission


def get_owned_submission(db: Session, submission_id: int, user: User) -> Submission:
    """Candidates may only touch their own attempts; admins may touch any."""
    submission = get_submission_or_404(db, submission_id)
    if submission.user_id != user.id and not user.is_admin:
        raise ForbiddenError(f"submission {submission_id} belongs to another candidate")
    return submission


def find_active_attempt(db: Session, *, user_id: int, exam_id: int) -> Optional[Submission]:
    """
    The in-progress attempt for (user, exam), if any.

    Keyed on ``active_marker`` so it finds exactly the row the
    ``uq_submission_active_attempt`` constraint protects.
    """
    return (
        db.query(Submission)
        .filter(
            Submission.user_id == user_id,
            Submission.exam_id == exam_id,
            Submission.active_marker == ACTIVE,
        )
        .order_by(Submission.started_at.desc())
        .first()
    )


def create_attempt(
    db: Session,
    *,
    user_id: int,
    exam_id: int,
    exam_version: int,
    started_at: datetime,
) -> Submission:
    """
    Insert a new in-progress attempt.

    Raises ``sqlalchemy.exc.IntegrityError`` if another in-progress attempt
    for the same (user, exam) was inserted first.
    """
    submission = Submission(
        exam_id=exam_id,
        user_id=user_id,
        exam_version=exam_version,
        status=SubmissionStatus.UNGRADED.value,
        active_marker=ACTIVE,
        answers={},
        answers_draft={},
        question_results={},
        score=0.0,
        started_at=started_at,
        results_released=False,
    )
    db.add(submission)
    db.commit()
    db.refresh(submission)
    return submission


def conditional_update(
    db: Session,
    submission_id: int,
    values: Dict[str, Any],
    *,
    expected_status: Optional[str] = None,
    require_unsubmitted: bool = False,
) -> bool:
    """
    ``UPDATE submissions SET ... WHERE id = :id [AND status = :expected]``.

    Returns True if the row matched. The caller commits; a False return means
    another writer got there first and nothing was written.
    """
    query = db.query(Submission).filter(Submission.id == submission_id)
    if expected_status is not None:
        query = query.filter(Submission.status == expected_status)
    if require_unsubmitted:
        query = query.filter(Submission.submitted_at.is_(None))

    matched = query.update(
        {getattr(Submission, key): value for key, value in values.items()},
        synchronize_session=False,
    )
    return matched == 1


def list_submissions_for_user(
    db: Session,
    *,
    user: User,
    skip: int = 0,
    limit: int = 100,
) -> List[Submission]:
    return (
        db.query(Submission)
        .filter(Submission.user_id == user.id)
        .order_by(Submission.started_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def list_submitted(db: Session, *, exam_id: Optional[int] = None) -> List[Submission]:
    query = db.query(Submission).filter(Submission.submitted_at.isnot(None))
    if exam_id is not None:
        query = query.filter(Submission.exam_id == exam_id)
    return query.order_by(Submission.id.asc()).all()


def count_in_progress(db: Session, *, exam_id: int) -> int:
    return (
        db.query(Submission)
        .filter(
            Submission.exam_id == exam_id,
            Submission.status == SubmissionStatus.UNGRADED.value,
            Submission.submitted_at.is_(None),
        )
        .count()
    )
