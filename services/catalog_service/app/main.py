"""FastAPI application for the Catalog Service."""

from fastapi import FastAPI
from libs.common.middleware import add_observability_middleware
from services.catalog_service.routers import products_router


def create_app() -> FastAPI:
    """Create and configure the Catalog Service FastAPI app."""
    app = FastAPI(
        title="Lumi Catalog Service",
        version="0.1.0",
        description="Seller products with variants, gallery images and specifications.",
    )
    add_observability_middleware(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "catalog"}

    app.include_router(products_router)

    return app


app = create_app()
