# app/capture/client.py
"""
HTTP client for the fertilizer recommendation endpoint.

Contract:
  Request:  POST /api/fertilizer  {"imageData": "data:image/...;base64,..."}
  Response: {"soilHealth": ..., "recommendations": [...], "timestamp": ...}
            (or {"error": "...", "soilHealth": "Unknown", ...} with a 4xx/5xx)

The rendering layer reads `status`, `result` and `error_message`.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

import httpx
from loguru import logger

from app.core.config import settings
from app.schemas.fertilizer import HealthStatus, ImagePayload, RecommendationResult

GENERIC_ERROR = "An error occurred"
FALLBACK_ERROR = "Failed to get recommendations. Please try again."


class SubmissionStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    FAILED = "failed"
    SUCCEEDED = "succeeded"


class RecommendationError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RecommendationClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.RECOMMENDATION_API_URL).rstrip("/")
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout or settings.REQUEST_TIMEOUT_SEC)

        self.status = SubmissionStatus.IDLE
        self.result: Optional[RecommendationResult] = None
        self.error_message: Optional[str] = None
        # reset 之後抵達的舊回應不更新狀態
        self._generation = 0

    @property
    def url(self) -> str:
        return f"{self.base_url}{settings.API_PREFIX}/fertilizer"

    @property
    def pending(self) -> bool:
        return self.status is SubmissionStatus.PENDING

    def disregard_pending(self) -> None:
        self._generation += 1
        self.status = SubmissionStatus.IDLE
        self.result = None
        self.error_message = None

    def _fail(self, generation: int, message: str) -> None:
        if generation != self._generation:
            logger.debug("Discarding stale failure: {}", message)
            return
        self.status = SubmissionStatus.FAILED
        self.error_message = message

    @staticmethod
    def _error_from(resp: httpx.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            return GENERIC_ERROR
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return GENERIC_ERROR

    async def submit(self, payload: ImagePayload) -> RecommendationResult:
        self._generation += 1
        generation = self._generation
        self.status = SubmissionStatus.PENDING
        self.result = None
        self.error_message = None

        try:
            resp = await self._http.post(self.url, json=payload.model_dump())
        except httpx.HTTPError as exc:
            logger.error("Recommendation request failed: {}", exc)
            self._fail(generation, FALLBACK_ERROR)
            raise RecommendationError(FALLBACK_ERROR) from exc

        if resp.is_error:
            message = self._error_from(resp)
            logger.warning("Recommendation rejected ({}): {}", resp.status_code, message)
            self._fail(generation, message)
            raise RecommendationError(message, status_code=resp.status_code)

        try:
            result = RecommendationResult.model_validate(resp.json())
        except ValueError as exc:
            logger.error("Unexpected recommendation payload: {}", exc)
            self._fail(generation, FALLBACK_ERROR)
            raise RecommendationError(FALLBACK_ERROR, status_code=resp.status_code) from exc

        if generation == self._generation:
            self.status = SubmissionStatus.SUCCEEDED
            self.result = result
        else:
            logger.debug("Discarding stale recommendation from {}", result.timestamp)
        return result

    async def health(self) -> HealthStatus:
        resp = await self._http.get(self.url)
        resp.raise_for_status()
        return HealthStatus.model_validate(resp.json())

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "RecommendationClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
