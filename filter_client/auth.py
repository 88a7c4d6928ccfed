"""
Bearer token provider and cache
"""
import asyncio
import logging
import time
from typing import Callable, Optional, Protocol

import httpx

from .config import ClientSettings, get_settings
from .errors import AuthError
from .log import mask_token
from .models import Credential

logger = logging.getLogger(__name__)


class TokenProvider(Protocol):
    async def fetch_token(self) -> str: ...


class PublicTokenProvider:
    """Fetches a public bearer token from the auth service."""

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.settings.identity_token:
            headers["Authorization"] = f"Bearer {self.settings.identity_token}"
        return headers

    async def fetch_token(self) -> str:
        url = self.settings.public_token_url
        logger.debug("Requesting token from %s", url)
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self.settings.token_timeout
            ) as client:
                response = await client.get(url, headers=self._headers())
        except httpx.HTTPError as e:
            raise AuthError(f"Token request failed: {e}") from e

        if not response.is_success:
            raise AuthError(
                f"Failed to get token: {response.status_code} - {response.text[:100]}",
                status=response.status_code,
            )

        try:
            token = response.json().get("token")
        except (ValueError, AttributeError) as e:
            raise AuthError(f"Token response is not a JSON object: {e}") from e
        if not isinstance(token, str) or not token:
            raise AuthError("Token response has no token field")

        logger.info("Received token %s", mask_token(token, 20))
        return token


class TokenCache:
    """Caches one credential and refreshes it from a provider on miss or expiry.

    Concurrent callers during a miss share a single provider call. The cache
    lives in memory only; each instance owns its own slot.
    """

    def __init__(
        self,
        provider: TokenProvider,
        ttl: float = 3000.0,
        clock: Callable[[], float] = time.time,
    ):
        self.provider = provider
        self.ttl = ttl
        self._clock = clock
        self._credential: Optional[Credential] = None
        self._inflight: Optional["asyncio.Future[Credential]"] = None
        self._inflight_generation = 0
        self._generation = 0

    @classmethod
    def from_settings(
        cls,
        settings: Optional[ClientSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "TokenCache":
        settings = settings or get_settings()
        return cls(PublicTokenProvider(settings, transport=transport), ttl=settings.token_ttl)

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    async def get_token(self) -> Credential:
        credential = self._credential
        if credential is not None and credential.is_valid(self._clock()):
            logger.debug("Using cached token %s", mask_token(credential.token, 20))
            return credential

        previous = self._inflight
        if previous is None or self._inflight_generation != self._generation:
            logger.info("No valid cached token, requesting new one")
            task = asyncio.ensure_future(self._refresh(self._generation, after=previous))
            task.add_done_callback(self._clear_inflight)
            self._inflight = task
            self._inflight_generation = self._generation
        # shield: one waiter being cancelled must not cancel the shared fetch
        return await asyncio.shield(self._inflight)

    def invalidate(self) -> None:
        """Drop the credential. A fetch still running is kept but never cached."""
        self._credential = None
        self._generation += 1
        logger.info("Token cache cleared")

    async def _refresh(
        self, generation: int, after: Optional["asyncio.Future[Credential]"] = None
    ) -> Credential:
        if after is not None and not after.done():
            # one provider call at a time, even across invalidate()
            await asyncio.wait([after])
        issued_at = self._clock()
        try:
            token = await self.provider.fetch_token()
        except AuthError:
            raise
        except Exception as e:
            raise AuthError(f"Token provider failed: {e}") from e
        credential = Credential(token=token, expires_at=issued_at + self.ttl)
        if generation == self._generation:
            self._credential = credential
            logger.info("Token cached, expires in %d minutes", self.ttl // 60)
        return credential

    def _clear_inflight(self, task: "asyncio.Future[Credential]") -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled():
            # Mark the error as retrieved when every waiter went away
            task.exception()
