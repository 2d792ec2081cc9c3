"""
learnlytics/errors.py
Centralized Error Handling for the analytics API

CORE PRINCIPLES:
- No 500 errors caused by caller input
- All errors follow consistent structure
- Errors are user-safe (no stack traces)
- Errors are machine-readable

ERROR RESPONSE STRUCTURE:
{
    "success": false,
    "error": "ErrorType",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "details": {} (optional)
}
"""

import logging
import uuid
from typing import Optional, Dict, Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from learnlytics.exceptions import (
    LearnlyticsException,
    MalformedAnswerError,
    EmptyScopeError,
    ExternalServiceError,
)

logger = logging.getLogger(__name__)


class ErrorCode:
    """Unique error codes for machine-readable error handling"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    MALFORMED_ANSWER = "MALFORMED_ANSWER"

    EMPTY_SCOPE = "EMPTY_SCOPE"

    INTERNAL_ERROR = "INTERNAL_ERROR"
    AI_SERVICE_ERROR = "AI_SERVICE_ERROR"


class ErrorResponse(BaseModel):
    """Standard error response model"""
    success: bool = False
    error: str
    message: str
    code: str
    details: Optional[Dict[str, Any]] = None


class APIError(Exception):
    """Base API exception with consistent structure"""

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        code: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        self.error = error
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)

    def to_response(self) -> JSONResponse:
        """Convert to FastAPI JSONResponse"""
        return JSONResponse(status_code=self.status_code, content=self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        result = ErrorResponse(
            error=self.error,
            message=self.message,
            code=self.code,
            details=self.details
        ).model_dump()
        if not self.details:
            result.pop("details")
        return result

    @classmethod
    def from_exception(cls, exc: LearnlyticsException) -> "APIError":
        """Translate a domain exception into its API envelope."""
        if isinstance(exc, MalformedAnswerError):
            return cls(
                status_code=status.HTTP_400_BAD_REQUEST,
                error="Bad Request",
                message=exc.message,
                code=ErrorCode.MALFORMED_ANSWER,
                details={
                    "record_index": exc.record_index,
                    "question_id": exc.question_id,
                    "reason": exc.reason
                }
            )
        if isinstance(exc, EmptyScopeError):
            return cls(
                status_code=status.HTTP_404_NOT_FOUND,
                error="Not Found",
                message=exc.message,
                code=ErrorCode.EMPTY_SCOPE,
                details={"scope": exc.scope}
            )
        if isinstance(exc, ExternalServiceError):
            return cls(
                status_code=status.HTTP_502_BAD_GATEWAY,
                error="Bad Gateway",
                message=exc.message,
                code=ErrorCode.AI_SERVICE_ERROR
            )
        return cls(
            status_code=exc.status_code,
            error="Error",
            message=exc.message,
            code=ErrorCode.INVALID_INPUT
        )


class InternalError(APIError):
    """500 Internal Server Error - Use sparingly, only for true internal failures"""
    def __init__(self, message: str = "An internal error occurred", log_id: Optional[str] = None):
        details = {"log_id": log_id} if log_id else None
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="Internal Error",
            message=message,
            code=ErrorCode.INTERNAL_ERROR,
            details=details
        )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the envelope-producing handlers to an app."""

    @app.exception_handler(LearnlyticsException)
    async def domain_error_handler(request: Request, exc: LearnlyticsException):
        logger.warning(f"Domain error on {request.url.path}: {exc.message}")
        return APIError.from_exception(exc).to_response()

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        log_id = str(uuid.uuid4())[:8]
        logger.error(
            f"[{log_id}] Internal error on {request.url.path}: {type(exc).__name__}: {exc}",
            exc_info=True
        )
        return InternalError(
            message="An internal error occurred. Please try again later.",
            log_id=log_id
        ).to_response()
