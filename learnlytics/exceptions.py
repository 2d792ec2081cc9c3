"""
learnlytics/exceptions.py
Custom exceptions for the analytics pipeline

Provides typed exceptions for:
- Malformed answer records (reported, computation continues)
- Empty analytics scopes (only raised when a caller asks for strict mode)
- Natural-language service failures (always recovered by the fallback generator)
"""
from typing import Optional


class LearnlyticsException(Exception):
    """Base exception for the analytics engine"""
    status_code: int = 500

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)


class MalformedAnswerError(LearnlyticsException):
    """
    Raised when a raw answer record cannot be turned into an Answer.

    Examples:
    - Record has no question_id
    - question_id does not match any known question
    - Same (student, question, quiz) attempt submitted twice
    """
    status_code = 400

    def __init__(
        self,
        reason: str,
        record_index: Optional[int] = None,
        question_id: Optional[str] = None
    ):
        self.reason = reason
        self.record_index = record_index
        self.question_id = question_id
        location = f"record {record_index}" if record_index is not None else "record"
        if question_id:
            location = f"{location} (question {question_id})"
        super().__init__(f"Malformed answer {location}: {reason}", self.status_code)


class EmptyScopeError(LearnlyticsException):
    """
    Raised when a scope holds no answers or no students.

    Aggregation degrades to zero-valued stats by default; this is only
    raised on the strict code paths.
    """
    status_code = 404

    def __init__(self, scope: str = "scope"):
        self.scope = scope
        super().__init__(f"No answers or students found in {scope}", self.status_code)


class ExternalServiceError(LearnlyticsException):
    """Natural-language service call failed (transport, status or payload)."""
    status_code = 502

    def __init__(self, message: str = "Insight service unavailable"):
        super().__init__(message, self.status_code)


class ExternalTimeoutError(ExternalServiceError):
    """Natural-language service did not answer within the per-call timeout."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Insight service timeout after {timeout_seconds}s")


class MalformedInsightError(ExternalServiceError):
    """Natural-language service answered, but the payload failed validation."""

    def __init__(self, message: str):
        super().__init__(f"Malformed insight payload: {message}")
