"""Seller order endpoints: list, detail, status command, order creation."""

import uuid
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.cache import (
    dashboard_metrics_key,
    get_cached_json,
    invalidate_store_views,
    order_list_key,
    set_cached_json,
)
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.catalog_service.models import Product
from services.orders_service.models import (
    Notification,
    NotificationType,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
)
from services.orders_service.realtime import OrderInsertEvent, publish_order_insert
from services.orders_service.schemas import (
    DashboardMetrics,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderSummary,
    OrderUpdate,
)
from services.orders_service.state_machine import (
    SELLER_TRANSITIONS,
    InvalidTransitionError,
    OrderNotFoundError,
    TransitionConflictError,
    apply_seller_update,
)
from services.stores_service.dependencies import get_current_store
from services.stores_service.models import Store
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

router = APIRouter(prefix="/orders", tags=["orders"])
logger = get_logger(__name__)


def order_response(order: Order) -> OrderResponse:
    response = OrderResponse.model_validate(order)
    response.allowed_transitions = sorted(
        SELLER_TRANSITIONS[order.status], key=lambda s: list(OrderStatus).index(s)
    )
    return response


async def _load_order(db: AsyncSession, store_id: uuid.UUID, order_id: uuid.UUID) -> Order:
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id, Order.store_id == store_id)
        .options(selectinload(Order.items))
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


# ============================================================================
# READ
# ============================================================================


@router.get("", response_model=OrderListResponse)
async def list_orders(
    status: Optional[OrderStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_async_db),
):
    """List the store's orders, newest first."""
    cache_key = order_list_key(str(store.id), status.value if status else None, skip, limit)
    cached = await get_cached_json(cache_key)
    if cached is not None:
        return cached

    query = select(Order).where(Order.store_id == store.id)
    count_query = select(func.count(Order.id)).where(Order.store_id == store.id)
    if status:
        query = query.where(Order.status == status)
        count_query = count_query.where(Order.status == status)

    total = (await db.execute(count_query)).scalar_one()
    result = await db.execute(
        query.order_by(Order.created_at.desc()).offset(skip).limit(limit)
    )
    response = OrderListResponse(
        orders=[OrderSummary.model_validate(o) for o in result.scalars().all()],
        total=total,
        skip=skip,
        limit=limit,
    )
    await set_cached_json(cache_key, response.model_dump(mode="json"))
    return response


@router.get("/dashboard/metrics", response_model=DashboardMetrics)
async def get_dashboard_metrics(
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_async_db),
):
    cache_key = dashboard_metrics_key(str(store.id))
    cached = await get_cached_json(cache_key)
    if cached is not None:
        return cached

    total_orders = (
        await db.execute(select(func.count(Order.id)).where(Order.store_id == store.id))
    ).scalar_one()
    pending_orders = (
        await db.execute(
            select(func.count(Order.id)).where(
                Order.store_id == store.id,
                Order.status.in_(
                    [OrderStatus.PENDING, OrderStatus.PAID, OrderStatus.PROCESSING]
                ),
            )
        )
    ).scalar_one()
    revenue = (
        await db.execute(
            select(func.coalesce(func.sum(Order.total_amount), 0)).where(
                Order.store_id == store.id,
                Order.payment_status == PaymentStatus.PAID,
            )
        )
    ).scalar_one()
    product_count = (
        await db.execute(
            select(func.count(Product.id)).where(Product.store_id == store.id)
        )
    ).scalar_one()

    metrics = DashboardMetrics(
        total_orders=total_orders,
        pending_orders=pending_orders,
        revenue=Decimal(str(revenue)).quantize(Decimal("0.01")),
        product_count=product_count,
    )
    await set_cached_json(cache_key, metrics.model_dump(mode="json"))
    return metrics


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: uuid.UUID,
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_async_db),
):
    """Order detail with line items and the shipping share of the total."""
    order = await _load_order(db, store.id, order_id)
    return order_response(order)


# ============================================================================
# WRITE
# ============================================================================


@router.patch("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: uuid.UUID,
    payload: OrderUpdate,
    current_user: AuthUser = Depends(get_current_user),
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Apply a seller status and/or tracking code update.

    Rejected moves return 409 (not in the transition table, or the order
    changed concurrently); unknown orders return 404.
    """
    try:
        result = await apply_seller_update(
            db,
            store.id,
            order_id,
            performed_by=current_user.user_id,
            status=payload.status,
            tracking_code=payload.tracking_code,
        )
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except (InvalidTransitionError, TransitionConflictError) as e:
        raise HTTPException(status_code=409, detail=e.message)

    if result.changed:
        await invalidate_store_views(str(store.id))
    order = await _load_order(db, store.id, order_id)
    return order_response(order)


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    payload: OrderCreate,
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Create an order with its items in one transaction, then announce it on
    the store's realtime channel.
    """
    items_subtotal = sum(
        (item.price * item.quantity for item in payload.items), Decimal("0")
    )
    paid = payload.already_paid
    order = Order(
        store_id=store.id,
        order_number=Order.generate_order_number(),
        customer_id=payload.customer_id,
        buyer_name=payload.buyer_name,
        buyer_email=payload.buyer_email,
        buyer_phone=payload.buyer_phone,
        buyer_address=payload.buyer_address,
        buyer_city=payload.buyer_city,
        buyer_country=payload.buyer_country,
        total_amount=items_subtotal + payload.shipping_cost,
        shipping_cost=payload.shipping_cost,
        payment_method=payload.payment_method,
        status=OrderStatus.PAID if paid else OrderStatus.PENDING,
        payment_status=PaymentStatus.PAID if paid else PaymentStatus.AWAITING_PAYMENT,
        paid_at=utc_now() if paid else None,
    )
    order.items = [
        OrderItem(
            store_id=store.id,
            product_id=item.product_id,
            product_name=item.product_name,
            variant=item.variant,
            quantity=item.quantity,
            price=item.price,
            subtotal=item.price * item.quantity,
        )
        for item in payload.items
    ]
    db.add(order)
    await db.flush()
    db.add(
        Notification(
            store_id=store.id,
            order_id=order.id,
            type=NotificationType.NEW_ORDER,
            title="New order",
            message=f"Order {order.order_number} from {order.buyer_name or 'Customer'}.",
        )
    )
    await db.commit()
    await invalidate_store_views(str(store.id))

    logger.info(
        f"Created order {order.order_number}",
        extra={"extra_fields": {"order_id": str(order.id), "store_id": str(store.id)}},
    )
    publish_order_insert(
        OrderInsertEvent(
            store_id=str(store.id),
            order_id=str(order.id),
            order_number=order.order_number,
            buyer_name=order.buyer_name,
            total_amount=order.total_amount,
        )
    )

    order = await _load_order(db, store.id, order.id)
    return order_response(order)
