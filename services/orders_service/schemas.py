"""Pydantic schemas for orders service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from services.orders_service.models import (
    NotificationType,
    OrderStatus,
    PaymentStatus,
)

# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class OrderItemCreate(BaseModel):
    product_id: Optional[uuid.UUID] = None
    product_name: str = Field(..., min_length=1, max_length=255)
    variant: Optional[str] = Field(None, max_length=255)
    quantity: int = Field(..., gt=0)
    price: Decimal = Field(..., ge=0, decimal_places=2)


class OrderCreate(BaseModel):
    """New order for the seller's own store (checkout hand-off or test order)."""

    customer_id: Optional[str] = None
    buyer_name: Optional[str] = Field(None, max_length=255)
    buyer_email: Optional[str] = Field(None, max_length=255)
    buyer_phone: Optional[str] = Field(None, max_length=50)
    buyer_address: Optional[str] = None
    buyer_city: Optional[str] = Field(None, max_length=100)
    buyer_country: Optional[str] = Field(None, max_length=100)
    shipping_cost: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    payment_method: str = Field("M-Pesa", max_length=50)
    already_paid: bool = False
    items: list[OrderItemCreate] = Field(..., min_length=1)


class OrderUpdate(BaseModel):
    """Seller command: ``{status?, tracking_code?}``."""

    model_config = ConfigDict(populate_by_name=True)

    status: Optional[OrderStatus] = None
    tracking_code: Optional[str] = Field(None, alias="trackingCode", max_length=100)

    @field_validator("status")
    @classmethod
    def sellers_cannot_mark_paid(cls, v: Optional[OrderStatus]) -> Optional[OrderStatus]:
        if v == OrderStatus.PAID:
            raise ValueError("Orders are marked paid by payment confirmation only")
        return v

    @field_validator("tracking_code")
    @classmethod
    def strip_tracking_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("tracking_code cannot be blank")
        return v


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: Optional[uuid.UUID] = None
    product_name: str
    variant: Optional[str] = None
    quantity: int
    price: Decimal
    subtotal: Decimal


class OrderSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    store_id: uuid.UUID
    order_number: str
    buyer_name: Optional[str] = None
    total_amount: Decimal
    status: OrderStatus
    payment_method: str
    payment_status: PaymentStatus
    tracking_code: Optional[str] = None
    created_at: datetime


class OrderResponse(OrderSummary):
    customer_id: Optional[str] = None
    buyer_email: Optional[str] = None
    buyer_phone: Optional[str] = None
    buyer_address: Optional[str] = None
    buyer_city: Optional[str] = None
    buyer_country: Optional[str] = None
    shipping_cost: Optional[Decimal] = None
    mpesa_transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    updated_at: datetime
    items: list[OrderItemResponse] = []
    items_subtotal: Decimal
    computed_shipping: Decimal
    allowed_transitions: list[OrderStatus] = []


class OrderListResponse(BaseModel):
    orders: list[OrderSummary]
    total: int
    skip: int
    limit: int


class DashboardMetrics(BaseModel):
    total_orders: int
    pending_orders: int
    revenue: Decimal
    product_count: int


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: NotificationType
    title: str
    message: Optional[str] = None
    order_id: Optional[uuid.UUID] = None
    is_read: bool
    created_at: datetime


class MarkAllReadResponse(BaseModel):
    updated: int
