# app/api/endpoints/fertilizer.py
import asyncio
from typing import Any

from fastapi import APIRouter, Request
from loguru import logger

from app.core.config import settings
from app.core.data_uri import is_image_data_uri
from app.core.errors import FertilizerRequestError
from app.ml import soil_analysis
from app.schemas.fertilizer import HealthStatus, RecommendationResult, now_iso

router = APIRouter()

# 分析入口；測試或換模型時可整個替換
_analyze = soil_analysis.analyze

_EMPTY_VALUES = (None, False, 0, "")


def _validate_image_data(body: Any) -> str:
    """
    依序檢查，遇到第一個錯誤即停止：
      1️⃣ imageData 必須存在且非空
      2️⃣ imageData 必須以 data:image/ 開頭
    body 為 null、或 imageData 不是字串時拋 TypeError（走 500）。
    """
    if body is None:
        raise TypeError("request body is null")
    image_data = body.get("imageData") if isinstance(body, dict) else None
    # 空值：null / false / 0 / ""；空的 list、dict 不算
    if image_data in _EMPTY_VALUES:
        raise FertilizerRequestError(400, "Image data is required")
    if not isinstance(image_data, str):
        raise TypeError(f"imageData must be a string, got {type(image_data).__name__}")
    if not is_image_data_uri(image_data):
        raise FertilizerRequestError(400, "Invalid image format")
    return image_data


@router.post(
    "",
    response_model=RecommendationResult,
    response_model_exclude_none=True,
    summary="Fertilizer recommendation from a soil image",
)
async def recommend_fertilizer(request: Request):
    # 不用 pydantic body：JSON 解析失敗要回 500 的統一格式，而非 422
    try:
        body = await request.json()
        image_data = _validate_image_data(body)

        core = _analyze(image_data)
        result = RecommendationResult(
            soilHealth=core.soilHealth,
            recommendations=core.recommendations,
            timestamp=now_iso(),
        )

        # 模擬處理時間
        await asyncio.sleep(settings.ANALYSIS_DELAY_SEC)
        return result
    except FertilizerRequestError:
        raise
    except Exception:
        logger.exception("Error processing fertilizer recommendation")
        raise FertilizerRequestError(500, "Internal server error")


@router.get("", response_model=HealthStatus, summary="Fertilizer service health")
async def fertilizer_health():
    return HealthStatus(timestamp=now_iso())
