"""
Error taxonomy for the upload pipeline
"""
import json
from enum import Enum
from typing import Optional

# Raw body characters kept in fallback error messages
ERROR_BODY_LIMIT = 100


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    AUTH = "auth"
    NETWORK = "network"
    TIMEOUT = "timeout"
    API = "api"


class FilterClientError(Exception):
    """Base class for every failure the client reports."""

    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def retryable(self) -> bool:
        return False


class ValidationError(FilterClientError):
    """Bad or missing input, raised before any network call."""

    kind = ErrorKind.VALIDATION


class AuthError(FilterClientError):
    """The token provider could not hand out a credential."""

    kind = ErrorKind.AUTH

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @property
    def retryable(self) -> bool:
        return True


class NetworkError(FilterClientError):
    kind = ErrorKind.NETWORK

    @property
    def retryable(self) -> bool:
        return True


class RequestTimeoutError(FilterClientError, TimeoutError):
    """The request did not complete before its deadline and was aborted."""

    kind = ErrorKind.TIMEOUT

    @property
    def retryable(self) -> bool:
        return True


class ApiError(FilterClientError):
    """The server answered with a non-2xx status or an unusable body."""

    kind = ErrorKind.API

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status

    @property
    def retryable(self) -> bool:
        return self.status >= 500

    @property
    def is_auth_failure(self) -> bool:
        return self.status in (401, 403)

    def __str__(self) -> str:
        return f"{self.status}: {self.message}"


def error_message(status: int, body: str) -> str:
    """Pick the server's ``message`` field, else a truncated raw body."""
    try:
        payload = json.loads(body)
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message:
            return message
    return f"API error: {status}. Response: {body[:ERROR_BODY_LIMIT]}"
