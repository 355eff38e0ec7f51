# exam_engine/schemas/submission.py
from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel

from exam_engine.schemas.exam import QuestionPublic, QuestionDetail


class QuestionResult(BaseModel):
    score: float
    is_correct: bool = False
    feedback: str | None = None
    graded_by: str | None = None
    pending: bool = False


class SubmissionPublic(BaseModel):
    """What a candidate sees before results are released."""
    id: int
    exam_id: int
    user_id: int
    status: str
    graded: bool
    answers: Dict[str, str] = {}
    started_at: datetime
    submitted_at: datetime | None = None
    time_spent_seconds: int | None = None
    is_late: bool = False
    results_released: bool

    questions: List[QuestionPublic] = []

    model_config = {"from_attributes": True}


class SubmissionDetail(SubmissionPublic):
    """Admin view, or the candidate's view once results are released."""
    exam_version: int
    score: float
    raw_score: float
    negative_deduction: float
    late_penalty_deduction: float
    total_points: float
    passed: bool | None = None
    question_results: Dict[str, QuestionResult] = {}

    questions: List[QuestionDetail] = []
