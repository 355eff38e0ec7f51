"""
Session Manager

Owns one candidate's attempt from start to submit:

    NOT_STARTED -> IN_PROGRESS (-> RESUMED on reconnect) -> SUBMITTED

Remaining time is always derived from the stored ``started_at`` and the
exam's current duration, never from anything the client reports. Writes are
conditional updates on the submission's status, so a draft can never reopen a
submitted attempt and two concurrent submits score the attempt once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from exam_engine.core.clock import as_utc, utcnow
from exam_engine.core.errors import ForbiddenError, ValidationError
from exam_engine.models.exam import Exam
from exam_engine.models.submission import Submission, SubmissionStatus
from exam_engine.models.user import User
from exam_engine.services import exam_service, grading, release_service, submission_service

logger = logging.getLogger(__name__)


@dataclass
class AttemptStart:
    submission: Submission
    exam: Exam
    resumed: bool
    deadline: datetime
    remaining_seconds: int


@dataclass
class DraftResult:
    saved: bool
    saved_at: Optional[datetime] = None


def deadline_for(exam: Exam, started_at: datetime) -> datetime:
    return as_utc(started_at) + timedelta(
        seconds=exam.duration_minutes * 60 + (exam.grace_period_seconds or 0)
    )


def remaining_seconds(exam: Exam, started_at: datetime, now: datetime) -> int:
    """duration + grace - elapsed, floored at 0."""
    left = (deadline_for(exam, started_at) - now).total_seconds()
    return max(0, int(left))


def _clean_answers(exam: Exam, answers: Mapping[str, object]) -> Dict[str, str]:
    if not isinstance(answers, Mapping):
        raise ValidationError("answers must be a mapping of question id to answer text")

    known = {str(q.id) for q in exam.questions}
    cleaned: Dict[str, str] = {}
    for qid, value in answers.items():
        qid = str(qid)
        if qid not in known:
            logger.warning(f"Dropping answer for unknown question {qid} on exam {exam.id}")
            continue
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValidationError(f"answer for question {qid} must be text")
        cleaned[qid] = value
    return cleaned


def start_or_resume(
    db: Session,
    *,
    user: User,
    exam_id: int,
    now: datetime | None = None,
) -> AttemptStart:
    """
    Resume the caller's in-progress attempt or create a new one.

    Exam validation happens here rather than at submit so nobody is left
    mid-exam with answers that cannot be graded.
    """
    now = now or utcnow()
    exam = exam_service.get_exam_or_404(db, exam_id)
    if not exam.published and not user.is_admin:
        raise ForbiddenError(f"exam {exam_id} is not available")
    grading.validate_exam(exam)

    resumed = True
    submission = submission_service.find_active_attempt(db, user_id=user.id, exam_id=exam_id)
    if submission is None:
        try:
            submission = submission_service.create_attempt(
                db,
                user_id=user.id,
                exam_id=exam_id,
                exam_version=exam.version,
                started_at=now,
            )
            resumed = False
        except IntegrityError:
            # A concurrent start created the attempt first
            db.rollback()
            submission = submission_service.find_active_attempt(db, user_id=user.id, exam_id=exam_id)
            if submission is None:
                raise

    if resumed:
        logger.info(f"User {user.id} resumed submission {submission.id} for exam {exam_id}")
    else:
        logger.info(f"User {user.id} started submission {submission.id} for exam {exam_id}")

    return AttemptStart(
        submission=submission,
        exam=exam,
        resumed=resumed,
        deadline=deadline_for(exam, submission.started_at),
        remaining_seconds=remaining_seconds(exam, submission.started_at, now),
    )


def save_draft(
    db: Session,
    *,
    user: User,
    submission_id: int,
    answers: Mapping[str, object],
    now: datetime | None = None,
) -> DraftResult:
    """
    Overwrite ``answers_draft`` (last writer wins).

    Only matches attempts still in progress; a late draft for a submitted
    attempt is dropped and reported as ``saved=False``.
    """
    now = now or utcnow()
    submission = submission_service.get_owned_submission(db, submission_id, user)
    draft = _clean_answers(submission.exam, answers or {})

    saved = submission_service.conditional_update(
        db,
        submission_id,
        {"answers_draft": draft},
        expected_status=SubmissionStatus.UNGRADED.value,
        require_unsubmitted=True,
    )
    db.commit()
    if not saved:
        logger.info(f"Ignored draft for submission {submission_id}: already submitted")
        return DraftResult(saved=False)
    return DraftResult(saved=True, saved_at=now)


def get_timer(
    db: Session,
    *,
    user: User,
    submission_id: int,
    now: datetime | None = None,
) -> dict:
    """Server-side countdown for an attempt; clients poll this to pick up extensions."""
    now = now or utcnow()
    submission = submission_service.get_owned_submission(db, submission_id, user)
    exam = submission.exam
    return {
        "submission_id": submission.id,
        "exam_id": exam.id,
        "exam_version": exam.version,
        "duration_minutes": exam.duration_minutes,
        "grace_period_seconds": exam.grace_period_seconds,
        "auto_submit_on_expiry": exam.auto_submit_on_expiry,
        "started_at": as_utc(submission.started_at),
        "deadline": deadline_for(exam, submission.started_at),
        "remaining_seconds": 0 if not submission.in_progress else remaining_seconds(
            exam, submission.started_at, now
        ),
        "submitted": submission.submitted_at is not None,
    }


def submit(
    db: Session,
    *,
    user: User,
    submission_id: int,
    answers: Optional[Mapping[str, object]] = None,
    now: datetime | None = None,
) -> Submission:
    """
    Final submit, manual or forced by expiry. Idempotent by submission id.

    When the payload carries no answers the last saved draft is graded. If the
    conditional write matches nothing, another submit won the race and its
    record is returned untouched.
    """
    now = now or utcnow()
    submission = submission_service.get_owned_submission(db, submission_id, user)

    if not submission.in_progress:
        logger.info(f"Submission {submission_id} already submitted; returning stored result")
        return submission

    exam = submission.exam
    final_answers = _clean_answers(
        exam, answers if answers is not None else (submission.answers_draft or {})
    )

    started_at = as_utc(submission.started_at)
    late = now > deadline_for(exam, started_at)
    result = grading.grade(exam, final_answers, late=late)
    released = release_service.release_on_submit(exam, now)

    won = submission_service.conditional_update(
        db,
        submission_id,
        {
            "answers": final_answers,
            "question_results": result.question_results,
            "score": result.score,
            "raw_score": result.raw_score,
            "negative_deduction": result.negative_deduction,
            "late_penalty_deduction": result.late_penalty_deduction,
            "total_points": result.total_points,
            "status": result.status,
            "submitted_at": now,
            "time_spent_seconds": max(0, int((now - started_at).total_seconds())),
            "is_late": late,
            "results_released": released,
            "active_marker": None,
        },
        expected_status=SubmissionStatus.UNGRADED.value,
        require_unsubmitted=True,
    )
    db.commit()
    db.refresh(submission)

    if not won:
        logger.info(f"Submission {submission_id} was submitted concurrently; no-op")
        return submission

    logger.info(
        f"Submission {submission_id} submitted by user {user.id}: "
        f"score={result.score}/{result.total_points}, status={result.status}, "
        f"late={late}, released={released}"
    )
    return submission
