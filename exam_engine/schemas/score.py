# exam_engine/schemas/score.py
from datetime import datetime

from pydantic import BaseModel, Field


class ManualGradeRequest(BaseModel):
    """Admin grades one question of a submission."""
    score: float = Field(ge=0)
    feedback: str | None = None


class ManualGradeResult(BaseModel):
    submission_id: int
    question_id: int
    score: float
    status: str


class RegradeRequest(BaseModel):
    exam_id: int | None = None


class RegradeReport(BaseModel):
    examined: int
    updated_count: int
    failed_count: int


class SingleRegradeResult(BaseModel):
    submission_id: int
    changed: bool
    score: float
    status: str


class PendingReview(BaseModel):
    submission_id: int
    exam_id: int
    user_id: int
    submitted_at: datetime | None = None
    score: float
    status: str
