"""FastAPI application for the Payments Service."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from libs.common.middleware import add_observability_middleware
from libs.common.redis import close_redis
from services.payments_service.routers import payments_router, webhooks_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the Payments Service FastAPI app."""
    app = FastAPI(
        title="Lumi Payments Service",
        version="0.1.0",
        description="M-Pesa payment initiation and confirmation callbacks.",
        lifespan=lifespan,
    )
    add_observability_middleware(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "payments"}

    app.include_router(payments_router)
    app.include_router(webhooks_router)

    return app


app = create_app()
