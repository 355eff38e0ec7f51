# exam_engine/models/submission.py
import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from exam_engine.db.base import Base


class SubmissionStatus(str, enum.Enum):
    UNGRADED = "UNGRADED"
    PENDING_MANUAL_REVIEW = "PENDING_MANUAL_REVIEW"
    GRADED = "GRADED"
    REVIEWED = "REVIEWED"


GRADED_STATUSES = (SubmissionStatus.GRADED.value, SubmissionStatus.REVIEWED.value)

# Value of active_marker while an attempt is in progress
ACTIVE = 1


class Submission(Base):
    __tablename__ = "submissions"
    # NULLs never collide, so only in-progress attempts (marker = 1) are unique
    __table_args__ = (
        UniqueConstraint("user_id", "exam_id", "active_marker", name="uq_submission_active_attempt"),
    )

    id = Column(Integer, primary_key=True, index=True)

    exam_id = Column(Integer, ForeignKey("exams.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    exam_version = Column(Integer, nullable=False, default=1)

    # UNGRADED / PENDING_MANUAL_REVIEW / GRADED / REVIEWED
    status = Column(String(32), nullable=False, default=SubmissionStatus.UNGRADED.value, index=True)
    active_marker = Column(Integer, nullable=True, default=ACTIVE)

    # question id (str) -> answer text
    answers = Column(JSON, nullable=False, default=dict)
    answers_draft = Column(JSON, nullable=False, default=dict)

    # question id (str) -> {score, is_correct, feedback, graded_by, ...}
    question_results = Column(JSON, nullable=False, default=dict)
    score = Column(Float, nullable=False, default=0.0)
    raw_score = Column(Float, nullable=False, default=0.0)
    negative_deduction = Column(Float, nullable=False, default=0.0)
    late_penalty_deduction = Column(Float, nullable=False, default=0.0)
    total_points = Column(Float, nullable=False, default=0.0)

    started_at = Column(DateTime(timezone=True), nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True, index=True)
    time_spent_seconds = Column(Integer, nullable=True)
    is_late = Column(Boolean, nullable=False, default=False)

    results_released = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    exam = relationship("Exam")

    @property
    def graded(self) -> bool:
        return self.status in GRADED_STATUSES

    @property
    def in_progress(self) -> bool:
        return self.status == SubmissionStatus.UNGRADED.value and self.submitted_at is None
