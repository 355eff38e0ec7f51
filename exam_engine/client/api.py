"""
HTTP client used by exam-taking front ends.

Thin wrapper over ``httpx.Client``; every method returns the decoded JSON body
and lets ``httpx`` errors propagate so callers can decide what is retryable.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from exam_engine.core.config import settings

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class ExamApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.Client(
            base_url=base_url or settings.API_BASE_URL,
            headers=headers,
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ExamApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        response = self._client.request(method, f"{API_PREFIX}{path}", **kwargs)
        response.raise_for_status()
        return response.json()

    def ping(self) -> bool:
        """Cheap connectivity probe; never raises."""
        try:
            self._request("GET", "/health/live")
            return True
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Connectivity probe failed: {e}")
            return False

    def start_attempt(self, exam_id: int) -> Dict[str, Any]:
        return self._request("POST", "/attempts/", json={"exam_id": exam_id})

    def save_draft(self, submission_id: int, answers: Dict[str, str]) -> Dict[str, Any]:
        return self._request("PUT", f"/attempts/{submission_id}/draft", json={"answers": answers})

    def submit(self, submission_id: int, answers: Dict[str, str]) -> Dict[str, Any]:
        return self._request("POST", f"/attempts/{submission_id}/submit", json={"answers": answers})

    def get_timer(self, submission_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/attempts/{submission_id}/timer")
