"""FastAPI application for the Orders Service."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from libs.common.config import get_settings
from libs.common.middleware import add_observability_middleware
from libs.common.redis import close_redis, ping_redis
from services.orders_service.realtime import relay_registry
from services.orders_service.routers import (
    notifications_router,
    orders_router,
    realtime_router,
)


async def _cache_status() -> str:
    if not get_settings().CACHE_ENABLED:
        return "disabled"
    return "up" if await ping_redis() else "down"


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the Orders Service FastAPI app."""
    app = FastAPI(
        title="Lumi Orders Service",
        version="0.1.0",
        description="Seller orders, status transitions, notifications and live order feed.",
        lifespan=lifespan,
    )
    add_observability_middleware(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict:
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": "orders",
            "cache": await _cache_status(),
            "live_sessions": len(relay_registry),
        }

    app.include_router(realtime_router)
    app.include_router(orders_router)
    app.include_router(notifications_router)

    return app


app = create_app()
