"""Orders Service models package."""

# Store table must be registered before the order foreign keys resolve
from services.stores_service.models import Store  # noqa: F401
from services.orders_service.models.core import (
    Order,
    OrderAuditLog,
    OrderItem,
    shipping_amount,
)
from services.orders_service.models.enums import (
    NotificationType,
    OrderStatus,
    PaymentStatus,
)
from services.orders_service.models.notifications import Notification

__all__ = [
    "Notification",
    "NotificationType",
    "Order",
    "OrderAuditLog",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "shipping_amount",
]
