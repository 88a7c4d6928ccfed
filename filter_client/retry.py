"""
Caller-side retry strategy for uploads
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

from .api import UploadClient
from .errors import ApiError, AuthError, ErrorKind, FilterClientError
from .models import UploadSuccess

logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    """Which failures are worth another attempt, and how long to wait."""

    max_attempts: int = 3
    backoff_factor: float = 0.5
    max_backoff: float = 10.0
    retry_auth_failures: bool = True

    def should_retry(self, error: BaseException) -> bool:
        if not isinstance(error, FilterClientError):
            return False
        if error.kind is ErrorKind.VALIDATION:
            return False
        if isinstance(error, ApiError):
            # the client already invalidated the token on 401/403
            return error.retryable or (self.retry_auth_failures and error.is_auth_failure)
        if isinstance(error, AuthError):
            return self.retry_auth_failures
        return error.retryable

    def wait(self) -> wait_exponential:
        return wait_exponential(multiplier=self.backoff_factor, max=self.max_backoff)


def _log_retry(state: RetryCallState) -> None:
    error = state.outcome.exception() if state.outcome else None
    logger.warning(
        "Attempt %d failed (%s), retrying in %.1fs",
        state.attempt_number,
        error,
        state.next_action.sleep if state.next_action else 0.0,
    )


async def generate_with_retry(
    client: UploadClient,
    image: Any,
    style: str,
    push_token: Optional[str] = None,
    policy: Optional[RetryPolicy] = None,
    **kwargs,
) -> UploadSuccess:
    """Call client.generate() until it succeeds or the policy gives up.

    The last typed error is re-raised once attempts are exhausted.
    """
    policy = policy or RetryPolicy()

    def before_retry(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        if isinstance(error, AuthError):
            client.token_cache.invalidate()
        _log_retry(state)

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=policy.wait(),
        retry=retry_if_exception(policy.should_retry),
        before_sleep=before_retry,
        reraise=True,
    ):
        with attempt:
            return await client.generate(image, style, push_token, **kwargs)
    raise AssertionError("unreachable")  # AsyncRetrying reraises the last error
