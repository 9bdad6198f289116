# app/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.logging import setup_logging
from app.core.errors import register_error_handlers
from app.api.router import api_router

# Monitoring
import sentry_sdk
from prometheus_fastapi_instrumentator import Instrumentator

logger = setup_logging()


def _validate_config() -> None:
    """
    部署前安全檢查：在 prod/staging/preview 等環境時，不允許 DEBUG 或萬用 CORS。
    """
    env = (settings.ENV or "").lower()
    if env in {"prod", "production", "staging", "preview"}:
        problems = []
        if settings.DEBUG:
            problems.append("DEBUG")
        if "*" in settings.CORS_ORIGINS:
            problems.append("CORS_ORIGINS")
        if problems:
            raise RuntimeError(
                f"Insecure config for {', '.join(problems)} in ENV={settings.ENV}. "
                "Please override them via environment variables."
            )


def create_app() -> FastAPI:
    # 基本安全檢查
    _validate_config()

    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
    )

    # CORS（前端從 localhost:3000 直接打 /api/fertilizer）
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---- Sentry 初始化（若 .env/SENTRY_DSN 未設定就略過）----
    if settings.SENTRY_DSN:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            environment=settings.SENTRY_ENV,
        )

    # ---- Prometheus /metrics ----
    Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    # 統一錯誤處理
    register_error_handlers(app)

    # === API 路由（/api/fertilizer）===
    app.include_router(api_router, prefix=settings.API_PREFIX)

    # 健康檢查（root & ops）
    @app.get("/", summary="Root")
    async def root():
        return {"app": settings.APP_NAME, "env": settings.ENV}

    @app.get("/healthz", tags=["ops"])
    async def healthz():
        return {"ok": True}

    @app.get("/readyz", tags=["ops"])
    async def readyz():
        # 無外部依賴（DB/Redis），啟動完成即 ready
        return {"ready": True}

    logger.info("Application initialized (env={})", settings.ENV)
    return app


# Uvicorn 進入點
app = create_app()
