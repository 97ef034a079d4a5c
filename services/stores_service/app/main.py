"""FastAPI application for the Stores Service."""

from fastapi import FastAPI
from libs.common.middleware import add_observability_middleware
from services.stores_service.routers import profiles_router, stores_router


def create_app() -> FastAPI:
    """Create and configure the Stores Service FastAPI app."""
    app = FastAPI(
        title="Lumi Stores Service",
        version="0.1.0",
        description="Seller profiles and storefront settings.",
    )
    add_observability_middleware(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "stores"}

    app.include_router(stores_router)
    app.include_router(profiles_router)

    return app


app = create_app()
