import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from mangum import Mangum
from starlette.middleware.cors import CORSMiddleware

from shopapi import containers
from shopapi.config import settings
from shopapi.core.exception_handlers import register_exception_handlers
from shopapi.logging_config import setup_logging
from shopapi.routers import health_router, order_router, point_router

load_dotenv("shopapi/.env")
setup_logging(settings.LOG_LEVEL, sql_echo=settings.DEBUG)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title=settings.APP_NAME)
    container = containers.Container()
    # 등급 테이블 검증 실패 시 여기서 기동 중단
    container.services.grade_resolver()
    app.container = container  # type: ignore

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"Request: {request.method} {request.url}")
        response = await call_next(request)
        logger.info(f"Response: {response.status_code}")
        return response

    register_exception_handlers(app)

    app.include_router(health_router.router)
    app.include_router(point_router.router, prefix=settings.API_V1_STR)
    app.include_router(order_router.router, prefix=settings.API_V1_STR)
    return app


app = create_app()

handler = Mangum(app)
