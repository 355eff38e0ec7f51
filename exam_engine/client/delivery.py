"""
Submission Delivery

Gets an attempt's final answers to the server under flaky connectivity. Every
retry reuses the same submission id, and the server treats a repeated submit
as a no-op, so duplicate arrivals are harmless. When every attempt fails the
caller gets a ``FatalDeliveryError``; an attempt is never dropped silently.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx

from exam_engine.client.api import ExamApiClient
from exam_engine.core.config import settings
from exam_engine.core.errors import DeliveryFailure, FatalDeliveryError

logger = logging.getLogger(__name__)

# Worth retrying: the request may succeed later without any change
RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

MANUAL_INTERVENTION_MESSAGE = (
    "Submission failed due to connectivity issues. "
    "Please contact an invigilator immediately."
)


class SubmissionDelivery:
    """
    Args:
        api: client used for the submit call (and the default online probe)
        max_attempts: submit attempts before giving up
        retry_delay: seconds between failed attempts
        offline_wait: seconds to wait while offline; does not use up an attempt
        max_offline_waits: offline waits allowed before giving up
        is_online: connectivity probe, defaults to ``api.ping``
        sleep: injectable for tests
    """

    def __init__(
        self,
        api: ExamApiClient,
        *,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        offline_wait: Optional[float] = None,
        max_offline_waits: Optional[int] = None,
        is_online: Optional[Callable[[], bool]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api = api
        self.max_attempts = settings.SUBMIT_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.retry_delay = settings.SUBMIT_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
        self.offline_wait = settings.SUBMIT_OFFLINE_WAIT_SECONDS if offline_wait is None else offline_wait
        self.max_offline_waits = (
            settings.SUBMIT_MAX_OFFLINE_WAITS if max_offline_waits is None else max_offline_waits
        )
        self.is_online = is_online or api.ping
        self.sleep = sleep

    def _send(self, submission_id: int, answers: Dict[str, str]) -> Dict[str, Any]:
        try:
            return self.api.submit(submission_id, answers)
        except httpx.HTTPStatusError as e:
            code = e.response.status_code
            if code in RETRYABLE_STATUS_CODES:
                raise DeliveryFailure(f"server answered {code}", status_code=code) from e
            # 4xx other than the above will not change on retry
            logger.critical(f"Submission {submission_id} rejected with {code}: {e.response.text}")
            raise FatalDeliveryError(
                f"Submission was rejected by the server ({code}). {MANUAL_INTERVENTION_MESSAGE}",
                submission_id=submission_id,
                last_error=e,
            ) from e
        except httpx.TransportError as e:
            raise DeliveryFailure(f"network error: {e}") from e
        except ValueError as e:
            # 2xx that is not JSON, e.g. a captive portal page
            raise DeliveryFailure(f"unreadable response: {e}") from e

    def deliver(self, submission_id: int, answers: Dict[str, str]) -> Dict[str, Any]:
        """Submit final answers, retrying per policy; returns the server's submit result."""
        attempts = 0
        offline_waits = 0
        last_error: Optional[BaseException] = None

        while attempts < self.max_attempts:
            if not self.is_online():
                if offline_waits >= self.max_offline_waits:
                    logger.error(f"[Submit] Still offline after {offline_waits} waits")
                    break
                offline_waits += 1
                logger.warning(
                    f"[Submit] Offline. Waiting {self.offline_wait}s to retry "
                    f"({offline_waits}/{self.max_offline_waits})"
                )
                self.sleep(self.offline_wait)
                continue

            attempts += 1
            try:
                result = self._send(submission_id, answers)
                logger.info(f"[Submit] Submission {submission_id} delivered on attempt {attempts}")
                return result
            except DeliveryFailure as e:
                last_error = e
                logger.warning(
                    f"[Submit] Attempt {attempts}/{self.max_attempts} for submission "
                    f"{submission_id} failed: {e}"
                )
                if attempts < self.max_attempts:
                    self.sleep(self.retry_delay)

        logger.critical(
            f"[Submit] Giving up on submission {submission_id} after {attempts} attempt(s) "
            f"and {offline_waits} offline wait(s)"
        )
        raise FatalDeliveryError(
            MANUAL_INTERVENTION_MESSAGE,
            submission_id=submission_id,
            last_error=last_error,
        )
