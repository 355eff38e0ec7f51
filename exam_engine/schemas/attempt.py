# exam_engine/schemas/attempt.py
from datetime import datetime
from typing import Dict

from pydantic import BaseModel

from exam_engine.schemas.exam import ExamPublic


class AttemptStartRequest(BaseModel):
    exam_id: int


class AttemptStartResponse(BaseModel):
    submission_id: int
    exam: ExamPublic
    started_at: datetime
    resumed: bool
    answers_draft: Dict[str, str] = {}
    remaining_seconds: int
    deadline: datetime


class AnswersPayload(BaseModel):
    """Full answer set, question id -> answer text."""
    answers: Dict[str, str] | None = None


class DraftSaved(BaseModel):
    saved: bool
    saved_at: datetime | None = None


class SubmitResult(BaseModel):
    submission_id: int
    status: str
    results_released: bool
    # Hidden from candidates until results are released
    score: float | None = None
    total_points: float | None = None
    is_late: bool = False


class TimerState(BaseModel):
    submission_id: int
    exam_id: int
    exam_version: int
    duration_minutes: int
    grace_period_seconds: int
    auto_submit_on_expiry: bool
    started_at: datetime
    deadline: datetime
    remaining_seconds: int
    submitted: bool
