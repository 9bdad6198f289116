# scripts/capture_once.py
# 用法：
#   python -m scripts.capture_once               # 開相機拍一張
#   python -m scripts.capture_once soil.jpg      # 送出本機圖片
import asyncio
import sys

from app.capture.client import RecommendationClient
from app.capture.session import CaptureSession
from app.core.logging import setup_logging


async def main(path=None):
    async with RecommendationClient() as client:
        session = CaptureSession(client)
        if path:
            await session.select_file(path)
        elif await session.start_camera():
            await session.capture_frame()

        if session.diagnostic:
            print({"diagnostic": session.diagnostic})
        elif client.result is not None:
            print(client.result.model_dump(exclude_none=True))
        else:
            print({"status": client.status.value, "error": client.error_message})


if __name__ == "__main__":
    setup_logging()
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None))
