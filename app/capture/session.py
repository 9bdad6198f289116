# app/capture/session.py
"""
取像流程狀態機：

    IDLE --start_camera--> CAMERA_ACTIVE --capture_frame--> CAPTURED
    IDLE / CAPTURED --select_file--> CAPTURED
    任何狀態 --reset--> IDLE

- 相機 handle 只由這個物件持有，開/關都經過這裡。
- 進入 CAPTURED 時自動送出一次建議請求；沒有獨立的「送出」動作。
- 相機啟用中與持有影像不會同時成立：拍照前一定先關相機。
"""
from __future__ import annotations

from enum import Enum
from typing import Callable, Optional, Union
from pathlib import Path

from loguru import logger

from app.capture.client import RecommendationClient, RecommendationError
from app.capture.sources import CameraSource, CV2Camera, ImageSourceError, SelectedFile, read_file
from app.schemas.fertilizer import ImagePayload, RecommendationResult


class CaptureState(str, Enum):
    IDLE = "idle"
    CAMERA_ACTIVE = "camera_active"
    CAPTURED = "captured"


class CaptureStateError(RuntimeError):
    pass


class CaptureSession:
    def __init__(
        self,
        client: RecommendationClient,
        camera_factory: Callable[[], CameraSource] = CV2Camera,
    ):
        self.client = client
        self._camera_factory = camera_factory
        self._camera: Optional[CameraSource] = None

        self.image: Optional[ImagePayload] = None
        self.selected_file: Optional[SelectedFile] = None
        # 最近一次取像失敗的訊息（給 UI 顯示）
        self.diagnostic: Optional[str] = None
        # reset 時遞增；讀取途中被 reset 的結果直接丟棄
        self._generation = 0

    @property
    def state(self) -> CaptureState:
        if self._camera is not None:
            return CaptureState.CAMERA_ACTIVE
        if self.image is not None:
            return CaptureState.CAPTURED
        return CaptureState.IDLE

    @property
    def camera_active(self) -> bool:
        return self._camera is not None

    def _require(self, action: str, *allowed: CaptureState) -> None:
        if self.state not in allowed:
            raise CaptureStateError(f"{action} is not allowed in state {self.state.value}")

    def _superseded(self, generation: int, what: str) -> bool:
        if generation == self._generation:
            return False
        logger.info("Discarding {} finished after reset", what)
        return True

    def _stop_camera(self) -> None:
        if self._camera is not None:
            self._camera.release()
            self._camera = None

    async def start_camera(self) -> bool:
        self._require("start_camera", CaptureState.IDLE)
        generation = self._generation
        camera = self._camera_factory()
        try:
            await camera.open()
        except ImageSourceError as exc:
            camera.release()
            if self._superseded(generation, "camera error"):
                return False
            self.diagnostic = str(exc)
            logger.warning("Error accessing camera: {}", exc)
            return False
        if self._superseded(generation, "camera start"):
            camera.release()
            return False
        self._camera = camera
        self.diagnostic = None
        return True

    async def capture_frame(self) -> Optional[RecommendationResult]:
        self._require("capture_frame", CaptureState.CAMERA_ACTIVE)
        generation = self._generation
        try:
            image = await self._camera.read_frame()
        except ImageSourceError as exc:
            if self._superseded(generation, "frame error"):
                return None
            self.diagnostic = str(exc)
            logger.warning("Error capturing frame: {}", exc)
            return None
        finally:
            # 成功或失敗都先釋放相機，再送出請求
            self._stop_camera()
        if self._superseded(generation, "frame"):
            return None
        return await self._enter_captured(image)

    async def select_file(self, file: Union[SelectedFile, str, Path]) -> Optional[RecommendationResult]:
        self._require("select_file", CaptureState.IDLE, CaptureState.CAPTURED)
        if not isinstance(file, SelectedFile):
            file = SelectedFile(Path(file))
        generation = self._generation
        try:
            image = await read_file(file)
        except ImageSourceError as exc:
            if self._superseded(generation, "file error"):
                return None
            # 狀態與既有影像保持不變
            self.diagnostic = str(exc)
            logger.warning("Rejected file {}: {}", file.path, exc)
            return None
        if self._superseded(generation, "file read"):
            return None
        self.selected_file = file
        return await self._enter_captured(image)

    async def _enter_captured(self, image: ImagePayload) -> Optional[RecommendationResult]:
        self.image = image
        self.diagnostic = None
        try:
            return await self.client.submit(image)
        except RecommendationError as exc:
            # 影像保留；使用者可重拍再試
            logger.error("Error sending image: {}", exc)
            return None

    def reset(self) -> None:
        self._generation += 1
        self.image = None
        self._stop_camera()
        self.selected_file = None
        self.diagnostic = None
        self.client.disregard_pending()
