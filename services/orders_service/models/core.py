"""Order models: orders, line items, audit trail."""

import secrets
import string
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.orders_service.models.enums import (
    OrderStatus,
    PaymentStatus,
    enum_values,
)
from sqlalchemy import JSON, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits

# ============================================================================
# ORDERS
# ============================================================================


class Order(Base):
    """Orders placed against a seller's store."""

    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # M-Pesa third-party reference; never reused
    order_number: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, index=True
    )

    # Buyer (guest checkout leaves customer_id empty)
    customer_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    buyer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    buyer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    buyer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    buyer_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    buyer_city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    buyer_country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Pricing (MZN)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    shipping_cost: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )

    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(OrderStatus, values_callable=enum_values, name="order_status_enum"),
        default=OrderStatus.PENDING,
        server_default="pending",
        nullable=False,
    )
    payment_method: Mapped[str] = mapped_column(
        String(50), default="M-Pesa", server_default="M-Pesa"
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(PaymentStatus, values_callable=enum_values, name="payment_status_enum"),
        default=PaymentStatus.AWAITING_PAYMENT,
        server_default="awaiting_payment",
        nullable=False,
    )
    tracking_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    mpesa_transaction_id: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True, index=True
    )

    # Timestamps
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    shipped_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    canceled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="order_total_non_negative"),
        Index("ix_orders_store_id_created_at", "store_id", "created_at"),
    )

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.created_at",
    )

    @staticmethod
    def generate_order_number() -> str:
        """Generate an unguessable order number like ORD-20260104-7K2Q9XAB."""
        date_part = utc_now().strftime("%Y%m%d")
        random_part = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(8))
        return f"ORD-{date_part}-{random_part}"

    @property
    def items_subtotal(self) -> Decimal:
        return sum((item.subtotal for item in self.items), Decimal("0"))

    @property
    def computed_shipping(self) -> Decimal:
        return shipping_amount(self.total_amount, self.items_subtotal)

    def __repr__(self):
        return f"<Order {self.order_number} status={self.status} payment={self.payment_status}>"


def shipping_amount(total_amount: Decimal, items_subtotal: Decimal) -> Decimal:
    """Shipping shown to the seller: order total minus line items, floored at zero."""
    return max(Decimal(total_amount) - Decimal(items_subtotal), Decimal("0.00")).quantize(
        Decimal("0.01")
    )


class OrderItem(Base):
    """Line item snapshot taken at purchase time. Never updated."""

    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    store_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    variant: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="order_item_positive_quantity"),
    )

    order = relationship("Order", back_populates="items")


# ============================================================================
# AUDIT
# ============================================================================


class OrderAuditLog(Base):
    """Every status / payment transition applied to an order."""

    __tablename__ = "order_audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    old_value: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    new_value: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    # Seller auth id, or "mpesa-webhook"
    performed_by: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    performed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
