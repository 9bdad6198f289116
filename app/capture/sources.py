# app/capture/sources.py
"""
影像來源：
- 相機（OpenCV）：開啟裝置 → 讀一張 frame → 編成 JPEG data URI
- 使用者選擇的檔案：檢查型別與大小 → 讀檔 → 編成 data URI

OpenCV 與讀檔都是阻塞 IO，一律丟到 worker thread（asyncio.to_thread），
避免卡住事件迴圈。
"""
from __future__ import annotations

import asyncio
import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import cv2
from loguru import logger

from app.core.config import settings
from app.core.data_uri import encode_data_uri
from app.schemas.fertilizer import ImagePayload


class ImageSourceError(Exception):
    """取像失敗；訊息直接顯示給使用者。"""


class CameraUnavailableError(ImageSourceError):
    pass


class FrameCaptureError(ImageSourceError):
    pass


class InvalidImageFileError(ImageSourceError):
    pass


# ===========================================
# 相機
# ===========================================
class CameraSource(ABC):
    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    async def open(self) -> None:
        """取得相機；失敗時拋 CameraUnavailableError。"""
        ...

    @abstractmethod
    async def read_frame(self) -> ImagePayload:
        """讀目前的畫面，回傳 JPEG data URI。"""
        ...

    @abstractmethod
    def release(self) -> None:
        """釋放硬體；重複呼叫不應出錯。"""
        ...


class CV2Camera(CameraSource):
    def __init__(
        self,
        index: Optional[int] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
        jpeg_quality: Optional[int] = None,
    ):
        self._index = index if index is not None else settings.CAMERA_INDEX
        self._width = width if width is not None else settings.CAMERA_WIDTH
        self._height = height if height is not None else settings.CAMERA_HEIGHT
        self._jpeg_quality = jpeg_quality if jpeg_quality is not None else settings.CAMERA_JPEG_QUALITY
        self._cap = None

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def _open_blocking(self):
        cap = cv2.VideoCapture(self._index)
        if not cap.isOpened():
            cap.release()
            raise CameraUnavailableError(f"Camera {self._index} is not accessible")
        # 只是偏好值，裝置不支援時會自動退回原生解析度
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        return cap

    async def open(self) -> None:
        if self.is_open:
            return
        self._cap = await asyncio.to_thread(self._open_blocking)
        logger.info("cv2_camera: opened device {}", self._index)

    def _read_blocking(self) -> bytes:
        ret, frame = self._cap.read()
        if not ret or frame is None:
            raise FrameCaptureError("Failed to capture frame")
        ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), self._jpeg_quality])
        if not ok:
            raise FrameCaptureError("Failed to encode frame")
        return buf.tobytes()

    async def read_frame(self) -> ImagePayload:
        if not self.is_open:
            raise FrameCaptureError("Camera is not active")
        raw = await asyncio.to_thread(self._read_blocking)
        return ImagePayload(imageData=encode_data_uri(raw, "image/jpeg"))

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("cv2_camera: released device {}", self._index)


# ===========================================
# 檔案
# ===========================================
@dataclass
class SelectedFile:
    path: Path
    # 未指定時依副檔名猜
    content_type: Optional[str] = field(default=None)

    def __post_init__(self):
        self.path = Path(self.path)
        if self.content_type is None:
            guessed, _ = mimetypes.guess_type(self.path.name)
            self.content_type = guessed or "application/octet-stream"

    @property
    def size(self) -> int:
        return self.path.stat().st_size


def validate_file(file: SelectedFile, max_bytes: Optional[int] = None) -> None:
    limit = max_bytes if max_bytes is not None else settings.MAX_UPLOAD_BYTES
    if not (file.content_type or "").startswith("image/"):
        raise InvalidImageFileError("Please upload an image file")
    if file.size > limit:
        raise InvalidImageFileError(f"Please upload an image smaller than {limit // (1024 * 1024)}MB")


async def read_file(file: Union[SelectedFile, str, Path], max_bytes: Optional[int] = None) -> ImagePayload:
    if not isinstance(file, SelectedFile):
        file = SelectedFile(Path(file))
    try:
        validate_file(file, max_bytes)
        raw = await asyncio.to_thread(file.path.read_bytes)
    except OSError as exc:
        logger.error("Error processing file {}: {}", file.path, exc)
        raise ImageSourceError("Could not read the selected file") from exc
    return ImagePayload(imageData=encode_data_uri(raw, file.content_type))
