"""Routers package."""

from services.orders_service.routers.notifications import router as notifications_router
from services.orders_service.routers.orders import router as orders_router
from services.orders_service.routers.realtime import router as realtime_router

__all__ = ["notifications_router", "orders_router", "realtime_router"]
