"""
Error Taxonomy

Error codes and the exceptions raised by services and request guards.
"""

import enum
from typing import Dict, Optional

from fastapi import status


class ErrorCode(str, enum.Enum):
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    FORBIDDEN = "FORBIDDEN"
    INVALID_IDEMPOTENCY_KEY = "INVALID_IDEMPOTENCY_KEY"
    MISSING_REQUIRED_FIELDS = "MISSING_REQUIRED_FIELDS"
    ATHLETE_NOT_FOUND = "ATHLETE_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_CANCELLED = "SESSION_CANCELLED"
    ALREADY_CHECKED_IN = "ALREADY_CHECKED_IN"
    LEAVE_ALREADY_REQUESTED = "LEAVE_ALREADY_REQUESTED"
    REQUEST_IN_PROGRESS = "REQUEST_IN_PROGRESS"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


STATUS_CODES: Dict[ErrorCode, int] = {
    ErrorCode.AUTHENTICATION_REQUIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.INVALID_IDEMPOTENCY_KEY: status.HTTP_400_BAD_REQUEST,
    ErrorCode.MISSING_REQUIRED_FIELDS: status.HTTP_400_BAD_REQUEST,
    ErrorCode.ATHLETE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SESSION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SESSION_CANCELLED: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_CHECKED_IN: status.HTTP_409_CONFLICT,
    ErrorCode.LEAVE_ALREADY_REQUESTED: status.HTTP_409_CONFLICT,
    ErrorCode.REQUEST_IN_PROGRESS: status.HTTP_409_CONFLICT,
    ErrorCode.RATE_LIMIT_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.NOT_IMPLEMENTED: status.HTTP_501_NOT_IMPLEMENTED,
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ApiError(Exception):
    """Error raised in the request path and rendered as a JSON envelope."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code or STATUS_CODES[code]
        self.headers = headers


class ActionError(ApiError):
    """Business rule violation raised by the action layer."""
