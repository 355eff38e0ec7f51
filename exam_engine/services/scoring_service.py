# exam_engine/services/scoring_service.py
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from exam_engine.core.errors import InvalidStateError, NotFoundError, ValidationError
from exam_engine.models.exam import Exam, Question
from exam_engine.models.submission import GRADED_STATUSES, Submission, SubmissionStatus
from exam_engine.models.user import User
from exam_engine.services import grading, submission_service

logger = logging.getLogger(__name__)


@dataclass
class RegradeOutcome:
    submission: Submission
    changed: bool


@dataclass
class RegradeReport:
    examined: int = 0
    updated_count: int = 0
    failed_count: int = 0


def _get_submitted(db: Session, submission_id: int) -> tuple[Submission, Exam]:
    submission = submission_service.get_submission_or_404(db, submission_id)
    if submission.submitted_at is None:
        raise InvalidStateError(f"submission {submission_id} has not been submitted yet")
    exam = submission.exam
    if exam is None:
        raise NotFoundError(f"exam {submission.exam_id} for submission {submission_id} not found")
    return submission, exam


def _find_question(exam: Exam, question_id: int) -> Question:
    for q in exam.questions:
        if q.id == question_id:
            return q
    raise NotFoundError(f"question {question_id} is not part of exam {exam.id}")


def manual_grade(
    db: Session,
    *,
    submission_id: int,
    question_id: int,
    score: float,
    feedback: Optional[str],
    grader: User,
) -> Submission:
    """
    Admin assigns a score to one question:
      - merge into question_results[question_id]
      - re-settle negative marking and recompute the total
      - PENDING_MANUAL_REVIEW while anything is unresolved, else GRADED
        (REVIEWED when an already graded submission is amended)
    """
    submission, exam = _get_submitted(db, submission_id)
    question = _find_question(exam, question_id)

    if score < 0 or score > question.points:
        raise ValidationError(
            f"score {score} is outside 0..{question.points} for question {question_id}"
        )

    results = copy.deepcopy(submission.question_results or {})
    results[str(question_id)] = {
        "score": float(score),
        "is_correct": score >= question.points / 2,
        "feedback": feedback,
        "graded_by": grading.GRADED_BY_MANUAL,
        "grader_id": grader.id,
    }
    total, deduction = grading.settle(exam, results)
    raw_score = sum(
        float(r.get("score") or 0) for r in results.values() if "penalty" not in r
    ) + float(submission.late_penalty_deduction or 0)

    previous_status = submission.status
    status = grading.status_for(exam, results)
    if status == SubmissionStatus.GRADED.value and previous_status in GRADED_STATUSES:
        status = SubmissionStatus.REVIEWED.value

    matched = submission_service.conditional_update(
        db,
        submission_id,
        {
            "question_results": results,
            "score": total,
            "raw_score": raw_score,
            "negative_deduction": deduction,
            "status": status,
        },
        expected_status=previous_status,
    )
    db.commit()
    if not matched:
        raise InvalidStateError(
            f"submission {submission_id} changed while grading; reload and try again"
        )

    db.refresh(submission)
    logger.info(
        f"User {grader.id} graded question {question_id} of submission {submission_id}: "
        f"score={score}, total={total}, status={status}"
    )
    return submission


def regrade_submission(db: Session, submission: Submission) -> RegradeOutcome:
    """
    Re-run the grading engine over stored answers against the exam's current
    questions. Manual SUBJECTIVE results are carried over; only a changed
    result is written back.
    """
    exam = submission.exam
    if exam is None:
        raise NotFoundError(f"exam {submission.exam_id} for submission {submission.id} not found")
    grading.validate_exam(exam)

    result = grading.grade(
        exam,
        submission.answers or {},
        submission.question_results or {},
        late=bool(submission.is_late),
    )
    status = result.status
    if status == SubmissionStatus.GRADED.value and submission.status == SubmissionStatus.REVIEWED.value:
        status = SubmissionStatus.REVIEWED.value

    unchanged = (
        result.question_results == (submission.question_results or {})
        and result.score == submission.score
        and status == submission.status
        and result.total_points == submission.total_points
    )
    if unchanged:
        return RegradeOutcome(submission=submission, changed=False)

    matched = submission_service.conditional_update(
        db,
        submission.id,
        {
            "question_results": result.question_results,
            "score": result.score,
            "raw_score": result.raw_score,
            "negative_deduction": result.negative_deduction,
            "late_penalty_deduction": result.late_penalty_deduction,
            "total_points": result.total_points,
            "status": status,
        },
        expected_status=submission.status,
    )
    db.commit()
    db.refresh(submission)
    if not matched:
        logger.warning(f"Submission {submission.id} changed during regrade; skipped")
        return RegradeOutcome(submission=submission, changed=False)

    logger.info(f"Regraded submission {submission.id}: score={result.score}, status={status}")
    return RegradeOutcome(submission=submission, changed=True)


def regrade_one(db: Session, *, submission_id: int) -> RegradeOutcome:
    submission, _ = _get_submitted(db, submission_id)
    return regrade_submission(db, submission)


def regrade_all(db: Session, *, exam_id: Optional[int] = None) -> RegradeReport:
    """
    Regrade every submitted attempt (optionally of one exam).

    A failing record is logged and counted; the sweep carries on. Running it
    twice in a row updates nothing the second time.
    """
    report = RegradeReport()
    ids = [s.id for s in submission_service.list_submitted(db, exam_id=exam_id)]

    for submission_id in ids:
        report.examined += 1
        try:
            submission = submission_service.get_submission_or_404(db, submission_id)
            if regrade_submission(db, submission).changed:
                report.updated_count += 1
        except Exception as e:
            db.rollback()
            report.failed_count += 1
            logger.error(f"Regrade failed for submission {submission_id}: {e}", exc_info=True)

    logger.info(
        f"Regrade finished: examined={report.examined}, updated={report.updated_count}, "
        f"failed={report.failed_count}"
    )
    return report


def list_pending_review(
    db: Session,
    *,
    exam_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Submission]:
    """Submitted attempts waiting for a human, oldest first."""
    query = db.query(Submission).filter(
        Submission.status == SubmissionStatus.PENDING_MANUAL_REVIEW.value,
        Submission.submitted_at.isnot(None),
    )
    if exam_id is not None:
        query = query.filter(Submission.exam_id == exam_id)
    return (
        query.order_by(Submission.submitted_at.asc())
        .offset(skip)
        .limit(limit)
        .all()
    )
