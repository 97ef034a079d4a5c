"""Routers package."""

from services.catalog_service.routers.products import router as products_router

__all__ = ["products_router"]
