"""
Error taxonomy for the exam engine.

Services raise these; the API layer turns ``EngineError`` subclasses into
JSON responses carrying ``status_code``. The delivery errors are raised on the
client side only.
"""

from typing import Any, Dict, Optional


class EngineError(Exception):
    """Base class for all errors raised by the exam engine services."""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"detail": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(EngineError):
    """Unknown exam, question or submission id."""

    status_code = 404


class ForbiddenError(EngineError):
    """Caller may not touch this record, or the action is admin-only."""

    status_code = 403


class InvalidStateError(EngineError):
    """The record is not in a state that allows the operation."""

    status_code = 409


class ValidationError(EngineError):
    """Malformed exam configuration or request payload."""

    status_code = 422


class DeliveryFailure(Exception):
    """A submit attempt failed in a way that a retry may fix."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class FatalDeliveryError(Exception):
    """
    The final answers could not be delivered.

    This is the one failure a candidate must see: the attempt is still on the
    client and someone has to intervene by hand.
    """

    def __init__(
        self,
        message: str,
        submission_id: Optional[int] = None,
        last_error: Optional[BaseException] = None,
    ) -> None:
        self.message = message
        self.submission_id = submission_id
        self.last_error = last_error
        super().__init__(message)
