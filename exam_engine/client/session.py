"""
Client-side exam session.

Keeps the countdown a front end displays, pushes drafts, notices duration
extensions and fires the expiry auto-submit exactly once. The countdown is a
display cache: it is seeded from the server's ``remaining_seconds`` (derived
from the stored start time) and only ever extended by positive deltas.

The front end calls ``poll()`` from its own tick (e.g. once a second); nothing
here starts threads.
"""

import enum
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from exam_engine.client.api import ExamApiClient
from exam_engine.client.delivery import SubmissionDelivery
from exam_engine.core.config import settings

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"


class ExamSession:
    def __init__(
        self,
        api: ExamApiClient,
        *,
        delivery: Optional[SubmissionDelivery] = None,
        clock: Callable[[], float] = time.monotonic,
        draft_interval: Optional[float] = None,
        duration_poll_interval: Optional[float] = None,
    ) -> None:
        self.api = api
        self.delivery = delivery or SubmissionDelivery(api)
        self.clock = clock
        self.draft_interval = draft_interval or settings.DRAFT_SAVE_INTERVAL_SECONDS
        self.duration_poll_interval = (
            duration_poll_interval or settings.DURATION_POLL_INTERVAL_SECONDS
        )

        self.state = SessionState.NOT_STARTED
        self.resumed = False
        self.submission_id: Optional[int] = None
        self.exam: Dict[str, Any] = {}
        self.question_ids: List[str] = []
        self.answers: Dict[str, str] = {}
        self.duration_minutes = 0
        self.auto_submit_on_expiry = False
        self.result: Optional[Dict[str, Any]] = None

        self._deadline = 0.0
        self._last_draft_at = 0.0
        self._last_duration_poll_at = 0.0
        self._auto_submitted = False
        self._submitting = False

    def start(self, exam_id: int) -> Dict[str, Any]:
        """Start or resume; on resume the saved draft becomes the working answer set."""
        data = self.api.start_attempt(exam_id)
        now = self.clock()

        self.submission_id = data["submission_id"]
        self.exam = data["exam"]
        self.question_ids = [str(q["id"]) for q in self.exam.get("questions", [])]
        self.answers = dict(data.get("answers_draft") or {})
        self.duration_minutes = self.exam["duration_minutes"]
        self.auto_submit_on_expiry = bool(self.exam.get("auto_submit_on_expiry"))
        self.resumed = bool(data.get("resumed"))

        self._deadline = now + data["remaining_seconds"]
        self._last_draft_at = now
        self._last_duration_poll_at = now
        self.state = SessionState.IN_PROGRESS

        logger.info(
            f"{'Resumed' if self.resumed else 'Started'} submission {self.submission_id} "
            f"with {data['remaining_seconds']}s remaining"
        )
        return data

    def answer(self, question_id, text: str) -> None:
        self.answers[str(question_id)] = text

    def remaining_seconds(self) -> int:
        if self.state == SessionState.NOT_STARTED:
            return 0
        return max(0, int(self._deadline - self.clock()))

    def unanswered_count(self) -> int:
        return sum(1 for qid in self.question_ids if not str(self.answers.get(qid, "")).strip())

    def save_draft(self) -> bool:
        """Best effort; failures are logged, never raised."""
        self._last_draft_at = self.clock()
        if self.state != SessionState.IN_PROGRESS or not self.answers:
            return False
        try:
            data = self.api.save_draft(self.submission_id, dict(self.answers))
            return bool(data.get("saved"))
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Auto-save failed for submission {self.submission_id}: {e}")
            return False

    def refresh_duration(self) -> int:
        """
        Poll the server timer and extend the local deadline by exactly the
        number of minutes added. Returns the seconds added (0 if none).
        """
        self._last_duration_poll_at = self.clock()
        if self.state != SessionState.IN_PROGRESS:
            return 0
        try:
            timer = self.api.get_timer(self.submission_id)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Duration poll failed for submission {self.submission_id}: {e}")
            return 0

        new_minutes = int(timer["duration_minutes"])
        if new_minutes <= self.duration_minutes:
            return 0

        added = (new_minutes - self.duration_minutes) * 60
        self._deadline += added
        self.duration_minutes = new_minutes
        logger.info(f"Exam extended by {added // 60} min for submission {self.submission_id}")
        return added

    def poll(self) -> Optional[Dict[str, Any]]:
        """
        One tick: save a draft and check for duration changes when their
        intervals are due, then auto-submit on expiry. Returns the submit
        result on the tick that submitted, otherwise None.
        """
        if self.state != SessionState.IN_PROGRESS:
            return None

        now = self.clock()
        if now - self._last_draft_at >= self.draft_interval:
            self.save_draft()
        if now - self._last_duration_poll_at >= self.duration_poll_interval:
            self.refresh_duration()

        if self.remaining_seconds() <= 0 and self.auto_submit_on_expiry and not self._auto_submitted:
            self._auto_submitted = True
            return self.submit(force=True)
        return None

    def submit(
        self,
        confirm: Optional[Callable[[int], bool]] = None,
        *,
        force: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """
        Deliver the final answers.

        A human submit with unanswered questions asks ``confirm(unanswered)``
        first; a forced (expiry) submit skips it. Returns None if the candidate
        declines or a submit is already running. ``FatalDeliveryError`` from
        delivery propagates so the front end can tell the candidate.
        """
        if self.state == SessionState.SUBMITTED:
            return self.result
        if self.state != SessionState.IN_PROGRESS or self._submitting:
            return None

        if not force and self.remaining_seconds() > 0:
            unanswered = self.unanswered_count()
            if unanswered and confirm is not None and not confirm(unanswered):
                return None

        self._submitting = True
        try:
            self.result = self.delivery.deliver(self.submission_id, dict(self.answers))
            self.state = SessionState.SUBMITTED
            return self.result
        finally:
            self._submitting = False
