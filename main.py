"""
FastAPI application entry point
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from api.routes import payments as payments_routes
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from core.config import settings
from core.exceptions import register_exception_handlers
from core.response import success_response
from core.logging_config import get_logger, configure_logging
from core.settings import GatewayConfig, breeze_settings
from infrastructure.database import create_tables
from infrastructure.external.cache import (
    init_redis_client,
    shutdown_redis_client,
)
from infrastructure.external.payments import get_payment_provider
from infrastructure.locks import InMemoryOrderLock, RedisOrderLock
from infrastructure.unit_of_work import sqlalchemy_uow_factory


# Configure logging explicitly at the entry point
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    # Auto-create tables in development only; production uses Alembic
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")
    else:
        logger.info(
            "database_migrations_required",
            message="No auto-create in production, use Alembic migrations (alembic upgrade head)"
        )

    config = GatewayConfig.from_settings(breeze_settings)
    if not config.webhook_secret:
        logger.error("breeze_webhook_secret_missing", message="Every webhook will be rejected")
    if not config.api_key:
        logger.warning("breeze_api_key_missing", test_mode=config.test_mode)

    # Per-order lock: redis when REDIS__URL is set, otherwise in-process
    lock = None
    if settings.redis.url:
        try:
            client = await init_redis_client()
            lock = RedisOrderLock(
                client,
                namespace=settings.redis.namespace,
                timeout=settings.redis.lock_timeout,
                blocking_timeout=settings.redis.lock_blocking_timeout,
            )
            logger.info("order_lock_selected", provider="redis")
        except Exception as exc:
            logger.error("order_lock_redis_init_failed", error=str(exc))
            raise
    if lock is None:
        lock = InMemoryOrderLock()
        logger.info("order_lock_selected", provider="inmemory")

    provider = get_payment_provider(config)
    app.state.gateway_config = config
    app.state.payment_provider = provider
    app.state.order_lock = lock
    app.state.uow_factory = sqlalchemy_uow_factory()
    logger.info(
        "breeze_gateway_initialized",
        api_base_url=config.api_base_url,
        test_mode=config.test_mode,
        currencies=sorted(config.supported_currencies),
    )

    yield

    await provider.aclose()
    if settings.redis.url:
        await shutdown_redis_client()
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="Breeze hosted-checkout payment gateway",
)

# Middleware runs bottom-up
# 1. Request ID first so later middleware can log it
app.add_middleware(RequestIDMiddleware)

# 2. Logging (needs request_id)
app.add_middleware(LoggingMiddleware)

# 3. CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(payments_routes.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
            "redoc": "/redoc"
        },
        message="Breeze checkout gateway"
    )


@app.get("/health", tags=["Health"])
async def health_check():
    return success_response(data={"status": "healthy"}, message="OK")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
