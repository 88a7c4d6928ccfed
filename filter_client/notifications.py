"""
Push token supply and device registration
"""
import asyncio
import logging
import uuid
from pathlib import Path
from typing import Optional, Protocol

import httpx

from .config import ClientSettings, get_settings
from .errors import ApiError, NetworkError, RequestTimeoutError, error_message
from .log import mask_token

logger = logging.getLogger(__name__)


class PushTokenSupplier(Protocol):
    async def get_push_token(self) -> Optional[str]: ...


class StaticPushTokenSupplier:
    """Hands out a token known up front (FILTER_PUSH_TOKEN or a CLI flag)."""

    def __init__(self, token: Optional[str]):
        self.token = token

    async def get_push_token(self) -> Optional[str]:
        return self.token


def load_device_id(path: Path) -> str:
    """Return the persisted device identifier, creating it on first use."""
    if path.exists():
        device_id = path.read_text(encoding="utf-8").strip()
        if device_id:
            return device_id
    device_id = str(uuid.uuid4())
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(device_id, encoding="utf-8")
    logger.info("Created device id %s at %s", device_id, path)
    return device_id


class NotificationRegistrar:
    def __init__(
        self,
        supplier: Optional[PushTokenSupplier] = None,
        settings: Optional[ClientSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.supplier = supplier or StaticPushTokenSupplier(self.settings.push_token)
        self._transport = transport
        self._last_token: Optional[str] = None

    async def get_push_token(self) -> Optional[str]:
        """Best effort: a failing supplier falls back to the last token seen."""
        try:
            token = await self.supplier.get_push_token()
        except Exception as e:
            logger.warning("Could not get push token: %s", e)
            return self._last_token
        if token:
            self._last_token = token
        return token or self._last_token

    def device_id(self) -> str:
        return load_device_id(self.settings.device_id_path)

    async def register_device(self, user_id: str) -> bool:
        """Register this device's push token with the backend.

        Returns False when there is no push token to register.
        """
        push_token = await self.get_push_token()
        if not push_token:
            logger.warning("No push token available, skipping registration")
            return False

        payload = {
            "userId": user_id,
            "fcmToken": push_token,
            "platform": self.settings.platform,
            "deviceId": await asyncio.to_thread(self.device_id),
        }
        url = self.settings.register_token_url
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self.settings.token_timeout
            ) as client:
                response = await asyncio.wait_for(
                    client.post(url, json=payload), self.settings.token_timeout
                )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError("Device registration timed out") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Device registration failed: {e}") from e

        if not response.is_success:
            raise ApiError(response.status_code, error_message(response.status_code, response.text))

        logger.info("Device token %s registered for %s", mask_token(push_token), user_id)
        return True
