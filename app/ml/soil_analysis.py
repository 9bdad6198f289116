# app/ml/soil_analysis.py
"""
土壤分析（mock）層：
- 輸入為已通過格式檢查的圖片 data URI，輸出土壤健康標籤與施肥建議。
- 目前回傳固定結果；之後換成真正的模型時，只需提供另一個 SoilAnalyzer，
  endpoint 的驗證流程與回應格式都不用動。

公開介面：
- SoilAnalyzer.analyze(image_data: str) -> RecommendationCore
- analyze(image_data: str) -> RecommendationCore  （預設 analyzer 的捷徑）
"""

from __future__ import annotations

from typing import List, Protocol

from app.schemas.fertilizer import RecommendationCore

PLACEHOLDER_SOIL_HEALTH = "Good"

# 順序即顯示順序
PLACEHOLDER_RECOMMENDATIONS: List[str] = [
    "Apply 20-30 kg/ha of nitrogen fertilizer",
    "Consider adding organic matter to improve soil structure",
    "Monitor soil moisture levels regularly",
]


class SoilAnalyzer(Protocol):
    def analyze(self, image_data: str) -> RecommendationCore:
        ...


class PlaceholderSoilAnalyzer:
    """不看圖片內容，永遠回傳相同建議。"""

    def analyze(self, image_data: str) -> RecommendationCore:
        return RecommendationCore(
            soilHealth=PLACEHOLDER_SOIL_HEALTH,
            recommendations=list(PLACEHOLDER_RECOMMENDATIONS),
        )


default_analyzer: SoilAnalyzer = PlaceholderSoilAnalyzer()


def analyze(image_data: str) -> RecommendationCore:
    return default_analyzer.analyze(image_data)
