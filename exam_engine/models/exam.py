# exam_engine/models/exam.py
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
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from exam_engine.db.base import Base


class QuestionType(str, enum.Enum):
    OBJECTIVE_SINGLE = "OBJECTIVE_SINGLE"
    OBJECTIVE_BEST = "OBJECTIVE_BEST"
    SUBJECTIVE = "SUBJECTIVE"


class ReleaseMode(str, enum.Enum):
    INSTANT = "INSTANT"
    DELAYED = "DELAYED"
    SCHEDULED = "SCHEDULED"
    MANUAL = "MANUAL"


class Exam(Base):
    __tablename__ = "exams"

    id = Column(Integer, primary_key=True, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Timer
    duration_minutes = Column(Integer, nullable=False, default=30)
    grace_period_seconds = Column(Integer, nullable=False, default=30)
    auto_submit_on_expiry = Column(Boolean, nullable=False, default=True)
    # Bumped on every duration change so open sessions can spot it
    version = Column(Integer, nullable=False, default=1)

    # Grading policy
    pass_mark = Column(Float, nullable=False, default=50.0)  # percent of total_points
    total_points = Column(Float, nullable=False, default=0.0)
    negative_marking_enabled = Column(Boolean, nullable=False, default=False)
    negative_marks_per_question = Column(Float, nullable=False, default=0.0)
    max_negative_deduction = Column(Float, nullable=False, default=0.0)  # 0 = uncapped
    late_penalty_percentage = Column(Float, nullable=False, default=0.0)

    # Result release
    release_mode = Column(String(20), nullable=False, default=ReleaseMode.INSTANT.value, index=True)
    scheduled_release_at = Column(DateTime(timezone=True), nullable=True)

    published = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    questions = relationship(
        "Question",
        back_populates="exam",
        order_by="Question.position",
        cascade="all, delete-orphan",
    )


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    type = Column(String(20), nullable=False)
    text = Column(Text, nullable=False)
    options = Column(JSON, nullable=True)
    # Rubric hint only for SUBJECTIVE questions
    correct_answer = Column(Text, nullable=True)
    points = Column(Float, nullable=False, default=1.0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    exam = relationship("Exam", back_populates="questions")
