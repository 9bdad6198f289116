# app/core/config.py
from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # === App Info ===
    APP_NAME: str = "Fertilizing Smart API"
    API_PREFIX: str = "/api"
    ENV: str = os.getenv("ENV", "dev")
    DEBUG: bool = True

    # === CORS ===
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors(cls, v: Any) -> List[str]:
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                import json
                return [x.strip() for x in json.loads(s)]
            return [x.strip() for x in s.split(",") if x.strip()]
        return v

    # === Fertilizer 分析 ===
    # 模擬處理延遲（秒）；前端的 loading 狀態依賴它
    ANALYSIS_DELAY_SEC: float = float(os.getenv("ANALYSIS_DELAY_SEC", "0.5"))

    # === Logging ===
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # === Observability（Sentry / Monitoring） ===
    SENTRY_DSN: Optional[str] = os.getenv("SENTRY_DSN")
    SENTRY_ENV: str = os.getenv("SENTRY_ENV", "dev")
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    # === Capture client ===
    RECOMMENDATION_API_URL: str = os.getenv("RECOMMENDATION_API_URL", "http://localhost:8000")
    REQUEST_TIMEOUT_SEC: float = 30.0

    CAMERA_INDEX: int = int(os.getenv("CAMERA_INDEX", "0"))
    CAMERA_WIDTH: int = 1920
    CAMERA_HEIGHT: int = 1080
    CAMERA_JPEG_QUALITY: int = 80

    # 上傳檔案上限 5MB
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """測試環境自動關閉 DEBUG"""
    s = Settings()
    if s.ENV == "test":
        s.DEBUG = False
    return s


settings = get_settings()
