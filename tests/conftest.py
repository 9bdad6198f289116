# tests/conftest.py
import os
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# ---- 測試期環境變數（先於 app 載入）----
os.environ.setdefault("ENV", "test")
# 縮短模擬延遲，但仍保留非 0（loading 狀態依賴它）
os.environ.setdefault("ANALYSIS_DELAY_SEC", "0.05")

from app.main import app  # noqa: E402
from app.capture.client import RecommendationClient  # noqa: E402
from app.capture.sources import CameraSource, CameraUnavailableError, FrameCaptureError  # noqa: E402
from app.core.data_uri import encode_data_uri  # noqa: E402
from app.schemas.fertilizer import ImagePayload  # noqa: E402

TEST_BASE_URL = "http://testserver"

# 只需要 PNG 簽章，內容不會被解碼
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\0" * 16


@pytest_asyncio.fixture
async def client():
    """使用 ASGITransport 直接掛載 app，不需啟動伺服器。"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url=TEST_BASE_URL) as ac:
        yield ac


@pytest_asyncio.fixture
async def rec_client(client: AsyncClient):
    """RecommendationClient 直接打 in-process app。"""
    rc = RecommendationClient(base_url=TEST_BASE_URL, http=client)
    yield rc
    await rc.aclose()


class FakeCamera(CameraSource):
    """記憶體內的相機；可模擬開啟失敗或讀取失敗。"""

    def __init__(self, fail_open: bool = False, fail_read: bool = False):
        self.fail_open = fail_open
        self.fail_read = fail_read
        self.opened = False
        self.release_calls = 0

    @property
    def is_open(self) -> bool:
        return self.opened

    async def open(self) -> None:
        if self.fail_open:
            raise CameraUnavailableError("Permission denied")
        self.opened = True

    async def read_frame(self) -> ImagePayload:
        if self.fail_read:
            raise FrameCaptureError("Failed to capture frame")
        return ImagePayload(imageData=encode_data_uri(PNG_BYTES, "image/jpeg"))

    def release(self) -> None:
        self.release_calls += 1
        self.opened = False


@pytest.fixture
def camera_rig():
    """camera_rig.factory(**kw) 給 CaptureSession；camera_rig.instances 收集建立過的相機。"""
    instances = []

    def factory(**kwargs):
        def make():
            cam = FakeCamera(**kwargs)
            instances.append(cam)
            return cam

        return make

    return SimpleNamespace(factory=factory, instances=instances)
