"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import admin as admin_routes
from api.routes import cart as cart_routes
from api.routes import health as health_routes
from api.routes import orders as orders_routes
from api.routes import payments as payments_routes
from api.routes import wallet as wallet_routes
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from infrastructure.database import Database
from infrastructure.external.payments import get_payment_gateway


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging()
logger = get_logger(__name__)

API_PREFIX = "/api/v1"


def create_app(database: Database | None = None, payment_gateway=None) -> FastAPI:
    """
    创建应用

    Args:
        database: 外部传入的 Database（测试用）；默认按配置创建并在关闭时释放
        payment_gateway: 外部传入的支付网关；默认按支付配置构建，未配置时为 None
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_db = database is None
        db = database or Database()
        app.state.db = db
        app.state.payment_gateway = payment_gateway if payment_gateway is not None else get_payment_gateway()

        # 开发环境自动建表；生产使用 Alembic 迁移
        if settings.DEBUG and owns_db:
            await db.create_tables()
            logger.info("database_initialized", message="Database tables created (development)")
        else:
            logger.info("database_migrations_required", message="Use Alembic migrations (alembic upgrade head)")

        logger.info(
            "application_started",
            environment=settings.ENVIRONMENT,
            payment_gateway=app.state.payment_gateway is not None,
        )
        yield
        if owns_db:
            await db.dispose()
        logger.info("application_shutdown", message="Application shutdown")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        description="课程市场交易与教师收益账本服务",
    )

    # 中间件（注意顺序：后添加的先执行）
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health_routes.router)
    app.include_router(health_routes.router, prefix=API_PREFIX)
    app.include_router(payments_routes.router, prefix=API_PREFIX)
    app.include_router(cart_routes.router, prefix=API_PREFIX)
    app.include_router(orders_routes.router, prefix=API_PREFIX)
    app.include_router(wallet_routes.router, prefix=API_PREFIX)
    app.include_router(admin_routes.router, prefix=API_PREFIX)

    @app.get("/", tags=["Root"])
    async def root():
        """API根路径"""
        return success_response(
            data={
                "name": settings.PROJECT_NAME,
                "version": settings.VERSION,
                "docs": "/docs",
            }
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
