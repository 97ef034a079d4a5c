"""Routers package."""

from services.stores_service.routers.profiles import router as profiles_router
from services.stores_service.routers.stores import router as stores_router

__all__ = ["profiles_router", "stores_router"]
