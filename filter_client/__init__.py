"""
Client for the AI style filter service
"""
from .api import UploadClient
from .auth import PublicTokenProvider, TokenCache
from .config import ClientSettings, get_settings
from .errors import (
    ApiError,
    AuthError,
    ErrorKind,
    FilterClientError,
    NetworkError,
    RequestTimeoutError,
    ValidationError,
)
from .models import Credential, UploadFailure, UploadRequest, UploadResult, UploadState, UploadSuccess
from .notifications import NotificationRegistrar, StaticPushTokenSupplier
from .retry import RetryPolicy, generate_with_retry

__all__ = [
    "UploadClient",
    "TokenCache",
    "PublicTokenProvider",
    "ClientSettings",
    "get_settings",
    "FilterClientError",
    "ValidationError",
    "AuthError",
    "NetworkError",
    "RequestTimeoutError",
    "ApiError",
    "ErrorKind",
    "Credential",
    "UploadRequest",
    "UploadResult",
    "UploadSuccess",
    "UploadFailure",
    "UploadState",
    "NotificationRegistrar",
    "StaticPushTokenSupplier",
    "RetryPolicy",
    "generate_with_retry",
]
