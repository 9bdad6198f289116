# app/api/router.py
from fastapi import APIRouter

from .endpoints import fertilizer

# === API 主路由 ===
api_router = APIRouter()

# 土壤影像 → 施肥建議（POST）；健康檢查（GET）
api_router.include_router(fertilizer.router, prefix="/fertilizer", tags=["fertilizer"])
