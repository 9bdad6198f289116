# app/schemas/fertilizer.py
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.data_uri import IMAGE_DATA_URI_PREFIX

UNKNOWN_SOIL_HEALTH = "Unknown"


def now_iso() -> str:
    """ISO-8601、毫秒精度、Z 結尾（與瀏覽器 Date.toISOString 同格式）"""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ImagePayload(BaseModel):
    """客戶端送出的請求本體；建立後不可變更，重拍時整個換掉。"""

    model_config = ConfigDict(frozen=True)

    imageData: str = Field(..., description="data URI, e.g. data:image/jpeg;base64,...")

    @field_validator("imageData")
    @classmethod
    def _must_be_image_data_uri(cls, v: str) -> str:
        if not v:
            raise ValueError("Image data is required")
        if not v.startswith(IMAGE_DATA_URI_PREFIX):
            raise ValueError("Invalid image format")
        return v


class RecommendationCore(BaseModel):
    soilHealth: str
    recommendations: List[str]


class RecommendationResult(RecommendationCore):
    timestamp: str
    # 只有失敗時才會出現
    error: Optional[str] = None

    @classmethod
    def failure(cls, message: str) -> "RecommendationResult":
        return cls(
            error=message,
            soilHealth=UNKNOWN_SOIL_HEALTH,
            recommendations=[],
            timestamp=now_iso(),
        )


class HealthStatus(BaseModel):
    status: Literal["healthy"] = "healthy"
    timestamp: str
