"""
Authenticated upload client for the filter service
"""
import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Optional

import httpx

from .auth import TokenCache
from .config import ClientSettings, get_settings
from .errors import (
    ApiError,
    FilterClientError,
    NetworkError,
    RequestTimeoutError,
    ValidationError,
    error_message,
)
from .log import mask_token
from .models import (
    STATE_ORDER,
    Credential,
    UploadFailure,
    UploadRequest,
    UploadResult,
    UploadState,
    UploadSuccess,
)
from .notifications import PushTokenSupplier

logger = logging.getLogger(__name__)

StateCallback = Callable[[UploadState], None]


def read_image(image: Any, filename: Optional[str] = None) -> tuple:
    """Resolve a path, byte buffer or binary file object to (bytes, name)."""
    if image is None:
        raise ValidationError("no image selected")

    if isinstance(image, (bytes, bytearray, memoryview)):
        data = bytes(image)
        name = filename or "image.png"
    elif isinstance(image, (str, Path)):
        raw = str(image)
        if not raw.strip():
            raise ValidationError("no image selected")
        if raw.startswith("file://"):
            raw = raw[len("file://"):]
        path = Path(raw)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ValidationError(f"cannot read image {path}: {e}") from e
        name = filename or path.name
    elif hasattr(image, "read"):
        data = image.read()
        if not isinstance(data, (bytes, bytearray)):
            raise ValidationError("image file must be opened in binary mode")
        data = bytes(data)
        name = filename or Path(getattr(image, "name", "") or "image.png").name
    else:
        raise ValidationError(f"unsupported image type: {type(image).__name__}")

    if not data:
        raise ValidationError("image is empty")
    return data, name


class UploadAttempt:
    """Forward-only state of a single generate() call."""

    def __init__(self, on_state: Optional[StateCallback] = None):
        self.state = UploadState.IDLE
        self._on_state = on_state

    def advance(self, state: UploadState) -> None:
        if self.state.terminal:
            return
        if STATE_ORDER[state] <= STATE_ORDER[self.state]:
            raise RuntimeError(f"illegal transition {self.state.value} -> {state.value}")
        self.state = state
        logger.debug("Upload state: %s", state.value)
        if self._on_state is not None:
            self._on_state(state)


class UploadClient:
    """Sends an image and a style to ``POST /generate`` and returns the result URL.

    Every call is independent; the token cache is the only state shared
    between calls. Failures are raised as FilterClientError subclasses and
    never retried here.
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        token_cache: Optional[TokenCache] = None,
        push_tokens: Optional[PushTokenSupplier] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.token_cache = token_cache or TokenCache.from_settings(self.settings, transport=transport)
        self.push_tokens = push_tokens
        self._transport = transport

    async def generate(
        self,
        image: Any,
        style: str,
        push_token: Optional[str] = None,
        *,
        filename: Optional[str] = None,
        on_state: Optional[StateCallback] = None,
    ) -> UploadSuccess:
        attempt = UploadAttempt(on_state)
        try:
            request = await self._build_request(image, style, push_token, filename)

            attempt.advance(UploadState.AUTHENTICATING)
            credential = await self.token_cache.get_token()

            attempt.advance(UploadState.UPLOADING)
            response = await self._send(request, credential, attempt)
            result = self._handle_response(response)
        except (FilterClientError, asyncio.CancelledError):
            attempt.advance(UploadState.FAILED)
            raise

        attempt.advance(UploadState.SUCCEEDED)
        logger.info("Generated image available at %s", result.image_url)
        return result

    async def generate_result(self, image: Any, style: str, push_token: Optional[str] = None, **kwargs) -> UploadResult:
        """Like generate(), but returns failures as UploadFailure values."""
        try:
            return await self.generate(image, style, push_token, **kwargs)
        except FilterClientError as e:
            return UploadFailure.from_error(e)

    async def download_result(self, image_url: str) -> bytes:
        """Fetch the generated image bytes."""
        timeout = self.settings.request_timeout
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=timeout) as client:
                response = await asyncio.wait_for(client.get(image_url), timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError("Download timed out. The server may be down or unreachable.") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Download failed: {e}") from e

        if not response.is_success:
            raise ApiError(response.status_code, error_message(response.status_code, response.text))
        if not response.content:
            raise ApiError(response.status_code, "Downloaded image is empty")
        return response.content

    async def _build_request(
        self, image: Any, style: str, push_token: Optional[str], filename: Optional[str]
    ) -> UploadRequest:
        if not isinstance(style, str) or not style.strip():
            raise ValidationError("no style selected")
        data, name = await asyncio.to_thread(read_image, image, filename)

        if push_token is None and self.push_tokens is not None:
            push_token = await self._best_effort_push_token()

        logger.info("Processing image with filter: %s", style)
        return UploadRequest(image=data, filename=name, style=style, push_token=push_token)

    async def _best_effort_push_token(self) -> Optional[str]:
        try:
            return await self.push_tokens.get_push_token()
        except Exception as e:
            logger.warning("Could not get push token, uploading without it: %s", e)
            return None

    async def _send(self, request: UploadRequest, credential: Credential, attempt: UploadAttempt) -> httpx.Response:
        timeout = self.settings.request_timeout
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {credential.token}",
        }

        async def dispatched(_request: httpx.Request) -> None:
            attempt.advance(UploadState.AWAITING_RESPONSE)

        logger.debug("Sending request with token %s", mask_token(credential.token))
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=timeout,
                event_hooks={"request": [dispatched]},
            ) as client:
                return await asyncio.wait_for(
                    client.post(
                        self.settings.generate_url,
                        headers=headers,
                        data=request.multipart_data(),
                        files=request.multipart_files(),
                    ),
                    timeout,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError("Request timed out. The server may be down or unreachable.") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Network error: {e}") from e

    def _handle_response(self, response: httpx.Response) -> UploadSuccess:
        status = response.status_code
        if response.is_success:
            try:
                body = response.json()
            except ValueError as e:
                raise ApiError(status, "Malformed response: body is not JSON") from e
            image_url = body.get("imageUrl") if isinstance(body, dict) else None
            if not isinstance(image_url, str) or not image_url:
                raise ApiError(status, "Malformed response: missing imageUrl")
            return UploadSuccess(image_url=image_url)

        if status in (401, 403):
            self.token_cache.invalidate()
        message = error_message(status, response.text)
        logger.error("API error response %s: %s", status, message)
        raise ApiError(status, message)
