import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from services.config import ServiceConfig, config
from services.db.connection import Database
from services.errors import InternalError, ServiceError, ValidationError
from services.payment import StripeCheckoutProvider
from services.user_service import UserService
from web.dependencies import configure_rate_limits, limiter
from web.routers import admin, auth, issues, payment, staff, user
from web.uploads import UPLOAD_URL_PREFIX


# 自定义日志格式化器, 统一使用 UTC
class UTCFormatter(logging.Formatter):
    """使用 UTC 时间的日志格式化器"""

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def setup_logging(log_dir: str, level: int = logging.INFO):
    """控制台 + 按天轮转的文件日志（LOG_DIR/issuehub.log）"""
    formatter = UTCFormatter(
        fmt='%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S UTC'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # 移除现有handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # 文件handler (按天轮转, 保留30天)
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    file_handler = TimedRotatingFileHandler(
        filename=log_path / "issuehub.log",
        when="midnight",
        interval=1,
        backupCount=30,
        encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # uvicorn 访问日志太吵
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: ServiceConfig = app.state.settings
    if app.state.configure_logging:
        setup_logging(settings.LOG_DIR)

    logger.info("Starting IssueHub API...")
    db: Database = app.state.db
    db.connect()

    # 启动时确保管理员账号存在
    if settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD:
        with db.session_scope() as session:
            admin_user = UserService(session).ensure_admin(
                settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD, settings.ADMIN_NAME
            )
            logger.info(f"✓ Admin account ready: {admin_user.email}")

    logger.info("Service is ready.")
    yield
    logger.info("Shutting down...")
    close = getattr(app.state.payment_provider, "close", None)
    if close:
        await close()
    db.close()


# Custom Rate Limit Handler
async def friendly_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """处理请求频率超限的情况，返回用户友好的错误提示。"""
    return JSONResponse(
        status_code=429,
        content={
            "error": "RateLimited",
            "message": "Too many requests, please wait a moment and retry",
            "detail": str(exc),
        },
    )


async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """请求体/参数校验失败统一返回 ValidationError"""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:])
    error = ValidationError(f"{field}: {first.get('msg')}" if field else None)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=True)
    error = InternalError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def create_app(
    settings: Optional[ServiceConfig] = None,
    payment_provider=None,
    configure_logging: bool = True,
) -> FastAPI:
    settings = settings or config
    app = FastAPI(title="IssueHub", lifespan=lifespan)

    app.state.settings = settings
    app.state.configure_logging = configure_logging
    app.state.db = Database(settings.DB_PATH)
    app.state.payment_provider = payment_provider or StripeCheckoutProvider(
        settings.STRIPE_SECRET_KEY,
        api_base=settings.STRIPE_API_BASE,
        timeout=settings.PAYMENT_TIMEOUT_SECONDS,
    )
    app.state.limiter = limiter
    configure_rate_limits(settings)

    app.add_exception_handler(RateLimitExceeded, friendly_rate_limit_handler)
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 上传文件（图片/头像）
    upload_path = Path(settings.UPLOAD_DIR)
    upload_path.mkdir(parents=True, exist_ok=True)
    app.mount(UPLOAD_URL_PREFIX.rstrip("/"), StaticFiles(directory=upload_path), name="uploads")

    for module in (auth, issues, admin, staff, payment, user):
        app.include_router(module.router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("web_app:app", host="0.0.0.0", port=8000, reload=True)
