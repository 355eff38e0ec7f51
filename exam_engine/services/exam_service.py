# exam_engine/services/exam_service.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from exam_engine.core.errors import InvalidStateError, NotFoundError, ValidationError
from exam_engine.models.exam import Exam, Question, QuestionType
from exam_engine.models.user import User
from exam_engine.schemas.exam import ExamCreate
from exam_engine.services import grading, submission_service

logger = logging.getLogger(__name__)


def create_exam(
    db: Session,
    *,
    author: User,
    obj_in: ExamCreate,
) -> Exam:
    """
    Admin creates an exam together with its ordered questions.
    total_points is derived from the questions, never taken from the caller.
    """
    exam = Exam(
        created_by=author.id,
        title=obj_in.title,
        description=obj_in.description,
        duration_minutes=obj_in.duration_minutes,
        grace_period_seconds=obj_in.grace_period_seconds,
        auto_submit_on_expiry=obj_in.auto_submit_on_expiry,
        pass_mark=obj_in.pass_mark,
        negative_marking_enabled=obj_in.negative_marking_enabled,
        negative_marks_per_question=obj_in.negative_marks_per_question,
        max_negative_deduction=obj_in.max_negative_deduction,
        late_penalty_percentage=obj_in.late_penalty_percentage,
        release_mode=obj_in.release_mode.value,
        scheduled_release_at=obj_in.scheduled_release_at,
        published=False,
        version=1,
    )
    for position, q_in in enumerate(obj_in.questions):
        exam.questions.append(
            Question(
                position=position,
                type=q_in.type.value,
                text=q_in.text,
                options=q_in.options if q_in.type != QuestionType.SUBJECTIVE else None,
                correct_answer=q_in.correct_answer,
                points=q_in.points,
            )
        )
    exam.total_points = sum(q.points for q in exam.questions)

    if obj_in.published:
        # same checks as publish_exam, before anything hits the database
        grading.validate_exam(exam)
        exam.published = True

    db.add(exam)
    db.commit()
    db.refresh(exam)
    logger.info(f"Exam {exam.id} created by user {author.id} with {len(exam.questions)} questions")
    return exam


def get_exam(db: Session, exam_id: int) -> Optional[Exam]:
    return db.query(Exam).filter(Exam.id == exam_id).first()


def get_exam_or_404(db: Session, exam_id: int) -> Exam:
    exam = get_exam(db, exam_id)
    if exam is None:
        raise NotFoundError(f"exam {exam_id} not found")
    return exam


def publish_exam(db: Session, *, exam_id: int) -> Exam:
    exam = get_exam_or_404(db, exam_id)
    grading.validate_exam(exam)
    exam.published = True
    db.add(exam)
    db.commit()
    db.refresh(exam)
    logger.info(f"Exam {exam.id} published")
    return exam


def update_duration(db: Session, *, exam_id: int, duration_minutes: int) -> Exam:
    """
    Change the exam duration while candidates may be sitting it.

    Open sessions notice the new ``version`` on their next timer poll and add
    the difference to their countdown. Shortening is refused while any attempt
    is in progress, so an already communicated deadline never moves earlier.
    """
    if duration_minutes <= 0:
        raise ValidationError("duration_minutes must be positive")

    exam = get_exam_or_404(db, exam_id)
    if duration_minutes == exam.duration_minutes:
        return exam

    if duration_minutes < exam.duration_minutes:
        in_progress = submission_service.count_in_progress(db, exam_id=exam_id)
        if in_progress:
            raise InvalidStateError(
                f"cannot shorten exam {exam_id} while {in_progress} attempt(s) are in progress"
            )

    old = exam.duration_minutes
    exam.duration_minutes = duration_minutes
    exam.version = (exam.version or 1) + 1
    db.add(exam)
    db.commit()
    db.refresh(exam)
    logger.info(
        f"Exam {exam.id} duration changed {old} -> {duration_minutes} min (version {exam.version})"
    )
    return exam
