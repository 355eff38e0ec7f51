# exam_engine/schemas/exam.py
from datetime import datetime
from typing import List

from pydantic import BaseModel, Field, model_validator

from exam_engine.models.exam import QuestionType, ReleaseMode


class QuestionCreate(BaseModel):
    type: QuestionType
    text: str
    options: List[str] | None = None
    correct_answer: str | None = None
    points: float = Field(default=1.0, gt=0)


class ExamCreate(BaseModel):
    title: str
    description: str | None = None
    duration_minutes: int = Field(default=30, gt=0)
    grace_period_seconds: int = Field(default=30, ge=0)
    auto_submit_on_expiry: bool = True
    pass_mark: float = Field(default=50.0, ge=0, le=100)

    negative_marking_enabled: bool = False
    negative_marks_per_question: float = Field(default=0.0, ge=0)
    max_negative_deduction: float = Field(default=0.0, ge=0)
    late_penalty_percentage: float = Field(default=0.0, ge=0, le=100)

    release_mode: ReleaseMode = ReleaseMode.INSTANT
    scheduled_release_at: datetime | None = None
    published: bool = False

    questions: List[QuestionCreate] = []

    @model_validator(mode="after")
    def _check_schedule(self):
        if self.release_mode == ReleaseMode.SCHEDULED and self.scheduled_release_at is None:
            raise ValueError("scheduled_release_at is required for SCHEDULED release")
        return self


class DurationUpdate(BaseModel):
    duration_minutes: int = Field(gt=0)


class QuestionPublic(BaseModel):
    """Candidate view: no correct answer."""
    id: int
    position: int
    type: str
    text: str
    options: List[str] | None = None
    points: float

    model_config = {"from_attributes": True}


class QuestionDetail(QuestionPublic):
    correct_answer: str | None = None


class ExamPublic(BaseModel):
    id: int
    title: str
    description: str | None = None
    duration_minutes: int
    grace_period_seconds: int
    auto_submit_on_expiry: bool
    pass_mark: float
    total_points: float
    release_mode: str
    scheduled_release_at: datetime | None = None
    published: bool
    version: int
    questions: List[QuestionPublic] = []

    model_config = {"from_attributes": True}


class ExamDetail(ExamPublic):
    """Admin view with answers and grading policy."""
    negative_marking_enabled: bool
    negative_marks_per_question: float
    max_negative_deduction: float
    late_penalty_percentage: float
    created_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    questions: List[QuestionDetail] = []
