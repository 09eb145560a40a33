"""
FastAPI应用主入口
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from api.routes import api_router
from api.dependencies import shutdown_dependencies
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from core.config import settings
from core.exceptions import register_exception_handlers
from core.response import success_response
from core.settings import payment_settings
from core.logging_config import get_logger, configure_logging
from infrastructure.database import create_tables, engine
from infrastructure.external.cache import (
    init_redis_client,
    shutdown_redis_client,
)


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时创建数据库表（仅开发环境）。生产应使用 Alembic 迁移
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")
    else:
        logger.info(
            "database_migrations_required",
            message="No auto-create in production, use Alembic migrations (alembic upgrade head)"
        )
    if settings.redis.url:
        try:
            await init_redis_client()
            logger.info("redis_cache_initialized", message="Redis cache initialized")
        except Exception as exc:
            # 退回进程内锁与缓存，单实例部署仍可工作
            logger.error(
                "redis_cache_init_failed",
                error=str(exc)
            )
    if not payment_settings.webhook_secret:
        logger.error("webhook_secret_missing", message="Every webhook will fail signature verification")

    yield

    # 关闭时的清理工作：先等待后台任务（可能仍在使用 HTTP 客户端）
    await shutdown_dependencies()
    if settings.redis.url:
        await shutdown_redis_client()
        logger.info("redis_cache_shutdown", message="Redis cache shutdown")
    await engine.dispose()
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="PayMongo 订阅支付到 Shopify 已付款订单的桥接服务",
)

# 添加中间件（后添加的在外层，先执行）
# 1. 日志中间件（依赖request_id，位于其内层）
app.add_middleware(LoggingMiddleware)

# 2. Request ID中间件（先于日志中间件执行，绑定 request_id）
app.add_middleware(RequestIDMiddleware)

# 3. CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# 注册全局异常处理器
register_exception_handlers(app)

# 注册路由
app.include_router(api_router)


# 健康检查
@app.get("/healthz", tags=["Health"])
async def health_check():
    """存活检查端点"""
    return success_response(data={"ok": True}, message="healthy")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
