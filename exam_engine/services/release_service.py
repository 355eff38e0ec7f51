"""
Release Policy Engine

Decides when a candidate may see a graded result. Per submission the flag only
moves HIDDEN -> RELEASED, except for the explicit admin toggle in
``release_submission``. Bulk operations are single conditional UPDATEs that
only match ``results_released = false`` rows, so they are idempotent and can
run while new submissions for the same exam arrive.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from exam_engine.core.clock import as_utc, utcnow
from exam_engine.core.errors import InvalidStateError
from exam_engine.models.exam import Exam, ReleaseMode
from exam_engine.models.submission import Submission
from exam_engine.models.user import User
from exam_engine.schemas.exam import QuestionDetail, QuestionPublic
from exam_engine.schemas.submission import SubmissionDetail, SubmissionPublic
from exam_engine.services import submission_service

logger = logging.getLogger(__name__)


def release_on_submit(exam: Exam, now: datetime) -> bool:
    """Whether a submission arriving at ``now`` is visible straight away."""
    if exam.release_mode == ReleaseMode.INSTANT.value:
        return True
    if exam.release_mode == ReleaseMode.SCHEDULED.value:
        due = as_utc(exam.scheduled_release_at)
        return due is not None and now >= due
    return False


def can_view_results(submission: Submission, user: User) -> bool:
    return user.is_admin or bool(submission.results_released)


def submission_view(submission: Submission, user: User) -> SubmissionPublic | SubmissionDetail:
    """
    GetSubmission payload. Correct answers, per-question results and the score
    only appear for admins or once the result is released.
    """
    exam = submission.exam
    data = {
        "id": submission.id,
        "exam_id": submission.exam_id,
        "user_id": submission.user_id,
        "status": submission.status,
        "graded": submission.graded,
        "answers": submission.answers or {},
        "started_at": as_utc(submission.started_at),
        "submitted_at": as_utc(submission.submitted_at),
        "time_spent_seconds": submission.time_spent_seconds,
        "is_late": submission.is_late,
        "results_released": submission.results_released,
    }
    if not can_view_results(submission, user):
        data["questions"] = [QuestionPublic.model_validate(q) for q in exam.questions]
        return SubmissionPublic(**data)

    passed = None
    if submission.graded and submission.total_points:
        passed = submission.score * 100.0 / submission.total_points >= exam.pass_mark
    data.update(
        exam_version=submission.exam_version,
        score=submission.score,
        raw_score=submission.raw_score,
        negative_deduction=submission.negative_deduction,
        late_penalty_deduction=submission.late_penalty_deduction,
        total_points=submission.total_points,
        passed=passed,
        question_results=submission.question_results or {},
        questions=[QuestionDetail.model_validate(q) for q in exam.questions],
    )
    return SubmissionDetail(**data)


def release_submission(db: Session, *, submission_id: int, release: bool = True) -> Submission:
    """Admin toggle; the only path that may hide a released result again."""
    submission = submission_service.get_submission_or_404(db, submission_id)
    if submission.submitted_at is None:
        raise InvalidStateError(f"submission {submission_id} has not been submitted yet")
    if submission.results_released == release:
        return submission

    submission_service.conditional_update(db, submission_id, {"results_released": release})
    db.commit()
    db.refresh(submission)
    logger.info(f"Submission {submission_id} results_released set to {release}")
    return submission


def _release_where(db: Session, *filters) -> int:
    released = (
        db.query(Submission)
        .filter(
            Submission.results_released.is_(False),
            Submission.submitted_at.isnot(None),
            *filters,
        )
        .update({Submission.results_released: True}, synchronize_session=False)
    )
    db.commit()
    return released


def release_exam(db: Session, *, exam_id: int) -> int:
    """Release every submitted attempt of one exam (MANUAL / DELAYED exams)."""
    released = _release_where(db, Submission.exam_id == exam_id)
    logger.info(f"Released {released} submission(s) for exam {exam_id}")
    return released


def release_delayed(db: Session) -> int:
    """Bulk release for all DELAYED exams."""
    exam_ids = [
        row.id
        for row in db.query(Exam.id).filter(Exam.release_mode == ReleaseMode.DELAYED.value).all()
    ]
    if not exam_ids:
        return 0
    released = _release_where(db, Submission.exam_id.in_(exam_ids))
    logger.info(f"Released {released} delayed submission(s) across {len(exam_ids)} exam(s)")
    return released


def due_exam_ids(db: Session, now: datetime) -> list[int]:
    return [
        row.id
        for row in db.query(Exam.id)
        .filter(
            Exam.release_mode == ReleaseMode.SCHEDULED.value,
            Exam.scheduled_release_at.isnot(None),
            Exam.scheduled_release_at <= now,
        )
        .all()
    ]


def release_due_sweep(db: Session, *, now: datetime | None = None) -> int:
    """
    Release unreleased, submitted attempts of SCHEDULED exams that are due.

    Safe to call at any time and any number of times; attempts still in
    progress are left alone and get released at submit instead.
    """
    now = now or utcnow()
    exam_ids = due_exam_ids(db, now)
    if not exam_ids:
        return 0
    released = _release_where(db, Submission.exam_id.in_(exam_ids))
    if released:
        logger.info(f"Release sweep released {released} submission(s) for exams {exam_ids}")
    return released
