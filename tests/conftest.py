import io

import httpx
import pytest
from PIL import Image

from filter_client.api import UploadClient
from filter_client.auth import PublicTokenProvider, TokenCache
from filter_client.config import ClientSettings

from .fake_service import FakeService


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings(tmp_path):
    return ClientSettings(
        _env_file=None,
        api_base_url="http://filter.test",
        auth_base_url="http://auth.test",
        request_timeout=5.0,
        token_timeout=5.0,
        device_id_path=tmp_path / "device_id",
        platform="linux",
    )


@pytest.fixture
def service():
    return FakeService()


@pytest.fixture
def transport(service):
    return httpx.ASGITransport(app=service.app)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def token_cache(settings, transport, clock):
    return TokenCache(PublicTokenProvider(settings, transport=transport), ttl=settings.token_ttl, clock=clock)


@pytest.fixture
def client(settings, token_cache, transport):
    return UploadClient(settings, token_cache=token_cache, transport=transport)


@pytest.fixture
def jpeg_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (16, 16), (200, 30, 30)).save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def jpeg_file(tmp_path, jpeg_bytes):
    path = tmp_path / "photo.JPG"
    path.write_bytes(jpeg_bytes)
    return path
