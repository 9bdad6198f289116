# tests/test_image_sources.py
import base64

import cv2
import numpy as np
import pytest

from app.capture import sources
from app.capture.sources import (
    CameraUnavailableError,
    CV2Camera,
    FrameCaptureError,
    ImageSourceError,
    InvalidImageFileError,
    SelectedFile,
    read_file,
    validate_file,
)
from app.core.data_uri import decode_data_uri

# 只需要 PNG 簽章，內容不會被解碼
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\0" * 16


class FakeVideoCapture:
    """模擬 cv2.VideoCapture：可控制是否開得起來、能不能讀到 frame。"""

    def __init__(self, index, opened=True, frame=None):
        self.index = index
        self.opened = opened
        self.frame = frame
        self.props = {}
        self.released = 0

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def read(self):
        if self.frame is None:
            return False, None
        return True, self.frame

    def release(self):
        self.released += 1
        self.opened = False


@pytest.fixture
def fake_capture(monkeypatch):
    created = []

    def install(opened=True, frame=None):
        def factory(index):
            cap = FakeVideoCapture(index, opened=opened, frame=frame)
            created.append(cap)
            return cap

        monkeypatch.setattr(sources.cv2, "VideoCapture", factory)
        return created

    return install


# ===========================================
# 相機
# ===========================================
@pytest.mark.asyncio
async def test_cv2_camera_captures_native_size_jpeg(fake_capture):
    frame = np.zeros((48, 64, 3), dtype=np.uint8)
    created = fake_capture(frame=frame)

    cam = CV2Camera(index=2)
    await cam.open()
    assert cam.is_open
    assert created[0].index == 2
    assert created[0].props[cv2.CAP_PROP_FRAME_WIDTH] == 1920
    assert created[0].props[cv2.CAP_PROP_FRAME_HEIGHT] == 1080

    payload = await cam.read_frame()
    mime, raw = decode_data_uri(payload.imageData)
    assert mime == "image/jpeg"
    decoded = cv2.imdecode(np.frombuffer(raw, np.uint8), cv2.IMREAD_COLOR)
    assert decoded.shape[:2] == (48, 64)

    cam.release()
    assert not cam.is_open
    # 再關一次不出錯
    cam.release()
    assert created[0].released == 1


@pytest.mark.asyncio
async def test_cv2_camera_keeps_explicit_zero_size(fake_capture):
    created = fake_capture(frame=np.zeros((4, 4, 3), dtype=np.uint8))
    cam = CV2Camera(width=0, height=0)
    await cam.open()
    # 0 是明確指定的值，不能被設定檔預設值蓋掉
    assert created[0].props[cv2.CAP_PROP_FRAME_WIDTH] == 0
    assert created[0].props[cv2.CAP_PROP_FRAME_HEIGHT] == 0
    cam.release()


@pytest.mark.asyncio
async def test_cv2_camera_open_failure(fake_capture):
    created = fake_capture(opened=False)
    cam = CV2Camera(index=0)
    with pytest.raises(CameraUnavailableError):
        await cam.open()
    assert not cam.is_open
    assert created[0].released == 1


@pytest.mark.asyncio
async def test_cv2_camera_read_failure(fake_capture):
    fake_capture(frame=None)
    cam = CV2Camera()
    await cam.open()
    with pytest.raises(FrameCaptureError):
        await cam.read_frame()


@pytest.mark.asyncio
async def test_cv2_camera_read_requires_open():
    with pytest.raises(FrameCaptureError):
        await CV2Camera().read_frame()


# ===========================================
# 檔案
# ===========================================
def test_selected_file_guesses_content_type(tmp_path):
    p = tmp_path / "soil.png"
    p.write_bytes(PNG_BYTES)
    f = SelectedFile(p)
    assert f.content_type == "image/png"
    assert f.size == len(PNG_BYTES)

    other = SelectedFile(tmp_path / "notes.unknownext")
    assert other.content_type == "application/octet-stream"


def test_validate_rejects_non_image(tmp_path):
    p = tmp_path / "notes.txt"
    p.write_text("hello")
    with pytest.raises(InvalidImageFileError, match="Please upload an image file"):
        validate_file(SelectedFile(p))


def test_validate_rejects_oversized(tmp_path):
    p = tmp_path / "big.jpg"
    p.write_bytes(b"\0" * (5 * 1024 * 1024 + 1))
    with pytest.raises(InvalidImageFileError, match="smaller than 5MB"):
        validate_file(SelectedFile(p))


def test_validate_accepts_exactly_limit(tmp_path):
    p = tmp_path / "edge.jpg"
    p.write_bytes(b"\0" * (5 * 1024 * 1024))
    validate_file(SelectedFile(p))


def test_validate_zero_limit_rejects_any_content(tmp_path):
    p = tmp_path / "tiny.jpg"
    p.write_bytes(b"\xff")
    with pytest.raises(InvalidImageFileError, match="smaller than 0MB"):
        validate_file(SelectedFile(p), max_bytes=0)

    empty = tmp_path / "empty.jpg"
    empty.write_bytes(b"")
    validate_file(SelectedFile(empty), max_bytes=0)


@pytest.mark.asyncio
async def test_read_file_uses_declared_content_type(tmp_path):
    p = tmp_path / "upload.bin"
    p.write_bytes(PNG_BYTES)
    payload = await read_file(SelectedFile(p, content_type="image/png"))
    assert payload.imageData == "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()


@pytest.mark.asyncio
async def test_read_file_accepts_plain_path(tmp_path):
    p = tmp_path / "soil.jpg"
    p.write_bytes(b"\xff\xd8\xff")
    payload = await read_file(str(p))
    assert payload.imageData.startswith("data:image/jpeg;base64,")


@pytest.mark.asyncio
async def test_read_file_missing_file(tmp_path):
    with pytest.raises(ImageSourceError):
        await read_file(tmp_path / "gone.png")
