from contextlib import asynccontextmanager
from datetime import datetime
import logging

from fastapi import FastAPI
import uvicorn

from infinitepay_webhook import __version__
from infinitepay_webhook.core.config import get_settings
from infinitepay_webhook.core.middleware import setup_exception_handlers
from infinitepay_webhook.core.responses import success_response
from infinitepay_webhook.routers import infinitepay_router

settings = get_settings()

# 로깅 설정
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    missing = settings.missing_store_settings()
    if missing:
        # 요청마다 configuration_error(500)로 응답하게 된다
        logger.warning("[INFINITEPAY] starting without store configuration: %s", ", ".join(missing))
    logger.info("[INFINITEPAY] server start (provider=%s)", settings.PAYMENT_PROVIDER)

    yield

    logger.info("[INFINITEPAY] server stop")


def create_app() -> FastAPI:
    app = FastAPI(
        title="InfinitePay Webhook Server",
        description="Normalizes InfinitePay payment webhooks into idempotent account credits",
        version=__version__,
        lifespan=lifespan,
        debug=settings.DEBUG
    )

    # 예외 처리 미들웨어 설정
    setup_exception_handlers(app)

    @app.get("/")
    async def root():
        return success_response(
            data={
                "message": "InfinitePay Webhook Backend running",
                "timestamp": datetime.now().isoformat(),
                "version": __version__,
            },
            message="서버가 정상적으로 실행 중입니다"
        )

    app.include_router(infinitepay_router.router)
    return app


app = create_app()


def run():
    uvicorn.run(
        "infinitepay_webhook.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=settings.DEBUG
    )


if __name__ == "__main__":
    run()
