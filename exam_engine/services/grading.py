"""
Grading Engine

Pure scoring functions: an exam's questions plus a candidate's answers go in,
per-question results and a total come out. Nothing here touches the database,
so the same call can be repeated any number of times (regrade relies on it).

``exam`` only needs the attributes of ``exam_engine.models.exam.Exam`` that are
read below (questions, total_points and the grading policy columns); question
ids are used as strings because answers and results are stored as JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from exam_engine.core.errors import ValidationError
from exam_engine.models.exam import QuestionType
from exam_engine.models.submission import SubmissionStatus

OBJECTIVE_TYPES = (QuestionType.OBJECTIVE_SINGLE.value, QuestionType.OBJECTIVE_BEST.value)

GRADED_BY_AUTO = "auto"
GRADED_BY_MANUAL = "manual"


@dataclass(frozen=True)
class GradingPolicy:
    negative_marking_enabled: bool = False
    negative_marks_per_question: float = 0.0
    max_negative_deduction: float = 0.0  # 0 = uncapped
    late_penalty_percentage: float = 0.0

    @classmethod
    def for_exam(cls, exam) -> "GradingPolicy":
        return cls(
            negative_marking_enabled=bool(getattr(exam, "negative_marking_enabled", False)),
            negative_marks_per_question=float(getattr(exam, "negative_marks_per_question", 0) or 0),
            max_negative_deduction=float(getattr(exam, "max_negative_deduction", 0) or 0),
            late_penalty_percentage=float(getattr(exam, "late_penalty_percentage", 0) or 0),
        )


@dataclass
class GradeResult:
    score: float
    total_points: float
    question_results: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    requires_manual_review: bool = False
    raw_score: float = 0.0
    negative_deduction: float = 0.0
    late_penalty_deduction: float = 0.0

    @property
    def status(self) -> str:
        if self.requires_manual_review:
            return SubmissionStatus.PENDING_MANUAL_REVIEW.value
        return SubmissionStatus.GRADED.value


def _normalize(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def is_manual_result(result: Optional[Mapping[str, Any]]) -> bool:
    return bool(result) and result.get("graded_by") == GRADED_BY_MANUAL and isinstance(
        result.get("score"), (int, float)
    )


def validate_exam(exam) -> None:
    """Reject exams that could leave a candidate with an ungradeable attempt."""
    questions = list(exam.questions or [])
    if not questions:
        raise ValidationError(f"exam {exam.id} has no questions")

    total = 0.0
    for q in questions:
        if q.points is None or q.points <= 0:
            raise ValidationError(f"question {q.id} must be worth a positive number of points")
        if q.type in OBJECTIVE_TYPES and not _normalize(q.correct_answer):
            raise ValidationError(f"objective question {q.id} has no correct answer")
        if q.type not in OBJECTIVE_TYPES and q.type != QuestionType.SUBJECTIVE.value:
            raise ValidationError(f"question {q.id} has unknown type {q.type!r}")
        total += q.points

    if abs(total - float(exam.total_points or 0)) > 1e-9:
        raise ValidationError(
            f"exam {exam.id} total_points={exam.total_points} does not match question points {total}"
        )


def settle(exam, results: Dict[str, Dict[str, Any]], policy: GradingPolicy | None = None) -> tuple[float, float]:
    """
    Allocate negative-marking penalties and return ``(score, deduction)``.

    Each result carrying a ``penalty`` gets ``-min(penalty, budget)`` as its
    score, in question order. The budget is what the positive results earned
    (capped by ``max_negative_deduction``), so the sum never goes below zero.
    Mutates ``results`` in place.
    """
    policy = policy or GradingPolicy.for_exam(exam)

    positive = sum(
        float(r.get("score") or 0)
        for r in results.values()
        if "penalty" not in r and float(r.get("score") or 0) > 0
    )
    budget = positive
    if policy.max_negative_deduction > 0:
        budget = min(budget, policy.max_negative_deduction)

    deducted = 0.0
    for q in exam.questions:
        result = results.get(str(q.id))
        if not result or "penalty" not in result:
            continue
        take = min(float(result["penalty"]), budget)
        budget -= take
        deducted += take
        result["score"] = -take if take else 0.0

    total = sum(float(r.get("score") or 0) for r in results.values())
    return max(0.0, total), deducted


def status_for(exam, results: Mapping[str, Mapping[str, Any]]) -> str:
    for q in exam.questions:
        result = results.get(str(q.id))
        if result is None or result.get("pending"):
            return SubmissionStatus.PENDING_MANUAL_REVIEW.value
    return SubmissionStatus.GRADED.value


def grade(
    exam,
    answers: Mapping[str, Any],
    prior_results: Optional[Mapping[str, Mapping[str, Any]]] = None,
    *,
    late: bool = False,
    policy: GradingPolicy | None = None,
) -> GradeResult:
    """
    Score ``answers`` against ``exam``.

    ``prior_results`` lets a regrade keep scores a human already assigned to
    SUBJECTIVE questions. ``late`` applies the exam's late penalty to
    auto-graded points.
    """
    policy = policy or GradingPolicy.for_exam(exam)
    answers = answers or {}
    prior_results = prior_results or {}

    results: Dict[str, Dict[str, Any]] = {}
    total_points = 0.0
    raw_score = 0.0
    late_deduction = 0.0
    requires_manual_review = False

    late_factor = 1.0
    if late and policy.late_penalty_percentage > 0:
        late_factor = max(0.0, 1.0 - policy.late_penalty_percentage / 100.0)

    for q in exam.questions:
        qid = str(q.id)
        points = float(q.points)
        total_points += points

        if q.type in OBJECTIVE_TYPES:
            given = _normalize(answers.get(qid))
            expected = _normalize(q.correct_answer)

            if given and given == expected:
                raw_score += points
                earned = points * late_factor
                late_deduction += points - earned
                results[qid] = {
                    "score": earned,
                    "is_correct": True,
                    "feedback": "Correct",
                    "graded_by": GRADED_BY_AUTO,
                }
            else:
                result = {
                    "score": 0.0,
                    "is_correct": False,
                    "feedback": "Incorrect" if given else "Not answered",
                    "graded_by": GRADED_BY_AUTO,
                }
                if given and policy.negative_marking_enabled and policy.negative_marks_per_question > 0:
                    result["penalty"] = policy.negative_marks_per_question
                results[qid] = result
        else:
            prior = prior_results.get(qid)
            if is_manual_result(prior):
                results[qid] = dict(prior)
                raw_score += float(prior["score"])
            else:
                requires_manual_review = True
                results[qid] = {
                    "score": 0.0,
                    "is_correct": False,
                    "feedback": "Requires manual grading",
                    "graded_by": GRADED_BY_AUTO,
                    "pending": True,
                }

    score, negative_deduction = settle(exam, results, policy)

    return GradeResult(
        score=score,
        total_points=total_points,
        question_results=results,
        requires_manual_review=requires_manual_review,
        raw_score=raw_score,
        negative_deduction=negative_deduction,
        late_penalty_deduction=late_deduction,
    )
