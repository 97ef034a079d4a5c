"""Order status / payment transitions.

Every write to ``orders.status`` or ``orders.payment_status`` goes through
this module as a guarded conditional UPDATE: the row only changes if it is
still in one of the states the transition may start from. A guard that
matches zero rows is reported to the caller instead of overwriting whatever
another writer (seller tab, payment webhook) put there first.

Seller transitions:

    pending    -> processing | canceled
    paid       -> processing | canceled
    processing -> shipped    | canceled
    shipped    -> delivered  | canceled
    delivered, canceled: terminal

``paid`` is only ever reached through ``settle_payment`` (M-Pesa callback).
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.orders_service.models import (
    Notification,
    NotificationType,
    Order,
    OrderAuditLog,
    OrderStatus,
    PaymentStatus,
)
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

WEBHOOK_ACTOR = "mpesa-webhook"
MPESA_SUCCESS_CODE = "0"

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELED})
OPEN_STATUSES = frozenset(OrderStatus) - TERMINAL_STATUSES

SELLER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELED}),
    OrderStatus.PAID: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELED: frozenset(),
}

STATUS_TIMESTAMPS = {
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELED: "canceled_at",
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in SELLER_TRANSITIONS[current]


def allowed_predecessors(target: OrderStatus) -> frozenset[OrderStatus]:
    """Statuses a seller may move an order out of to reach ``target``."""
    return frozenset(
        source for source, targets in SELLER_TRANSITIONS.items() if target in targets
    )


# ============================================================================
# ERRORS
# ============================================================================


class OrderTransitionError(Exception):
    """Base error for rejected order updates."""

    def __init__(self, message: str, order_id: Optional[uuid.UUID] = None):
        self.message = message
        self.order_id = order_id
        super().__init__(message)


class OrderNotFoundError(OrderTransitionError):
    pass


class InvalidTransitionError(OrderTransitionError):
    def __init__(
        self,
        message: str,
        order_id: Optional[uuid.UUID] = None,
        current: Optional[OrderStatus] = None,
        target: Optional[OrderStatus] = None,
    ):
        self.current = current
        self.target = target
        super().__init__(message, order_id)


class TransitionConflictError(OrderTransitionError):
    """The order changed between read and guarded write."""


# ============================================================================
# SELLER UPDATES
# ============================================================================


@dataclass
class TransitionResult:
    order: Order
    changed: bool
    old_status: OrderStatus
    new_status: OrderStatus


async def log_order_audit(
    db: AsyncSession,
    order_id: uuid.UUID,
    action: str,
    performed_by: str,
    old_value: Optional[dict] = None,
    new_value: Optional[dict] = None,
    notes: Optional[str] = None,
):
    """Add an audit row to the current transaction."""
    db.add(
        OrderAuditLog(
            order_id=order_id,
            action=action,
            old_value=old_value,
            new_value=new_value,
            performed_by=performed_by,
            notes=notes,
        )
    )


async def apply_seller_update(
    db: AsyncSession,
    store_id: uuid.UUID,
    order_id: uuid.UUID,
    performed_by: str,
    status: Optional[OrderStatus] = None,
    tracking_code: Optional[str] = None,
) -> TransitionResult:
    """
    Apply a seller's ``{status?, tracking_code?}`` update to one order.

    A request that asks for the status the order already has (and no new
    tracking code) is a no-op and writes nothing.

    Raises:
        OrderNotFoundError: no such order in this store
        InvalidTransitionError: the move is not in the transition table, or
            the order is terminal and a tracking code was sent
        TransitionConflictError: the guarded update matched no row because
            the order changed concurrently
    """
    result = await db.execute(
        select(Order).where(Order.id == order_id, Order.store_id == store_id)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFoundError("Order not found", order_id)

    current = order.status
    values: dict = {}
    guard = OPEN_STATUSES

    if status is not None and status != current:
        if not can_transition(current, status):
            raise InvalidTransitionError(
                f"Cannot change order status from {current.value} to {status.value}",
                order_id,
                current=current,
                target=status,
            )
        values["status"] = status
        if status in STATUS_TIMESTAMPS:
            values[STATUS_TIMESTAMPS[status]] = utc_now()
        guard = allowed_predecessors(status)

    if tracking_code is not None and tracking_code != order.tracking_code:
        if current in TERMINAL_STATUSES:
            raise InvalidTransitionError(
                f"Tracking code cannot change once an order is {current.value}",
                order_id,
                current=current,
            )
        values["tracking_code"] = tracking_code

    if not values:
        return TransitionResult(order, False, current, current)

    stmt = (
        update(Order)
        .where(
            Order.id == order_id,
            Order.store_id == store_id,
            Order.status.in_(guard),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    updated = await db.execute(stmt)
    if updated.rowcount == 0:
        await db.rollback()
        logger.warning(
            f"Guarded update on order {order_id} matched no row",
            extra={"extra_fields": {"expected": sorted(s.value for s in guard)}},
        )
        raise TransitionConflictError(
            "Order was modified by another update; reload and retry", order_id
        )

    new_status = values.get("status", current)
    await log_order_audit(
        db,
        order_id,
        "status_changed" if "status" in values else "tracking_updated",
        performed_by,
        old_value={"status": current.value, "tracking_code": order.tracking_code},
        new_value={
            "status": new_status.value,
            "tracking_code": values.get("tracking_code", order.tracking_code),
        },
    )
    await db.commit()
    await db.refresh(order)

    logger.info(
        f"Order {order.order_number} {current.value} -> {new_status.value}",
        extra={"extra_fields": {"order_id": str(order_id), "store_id": str(store_id)}},
    )
    return TransitionResult(order, True, current, new_status)


# ============================================================================
# PAYMENT SETTLEMENT (M-Pesa callback)
# ============================================================================


class SettlementOutcome(str, enum.Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    INCOMPLETE = "incomplete"


@dataclass
class PaymentSettlement:
    outcome: SettlementOutcome
    order_id: Optional[uuid.UUID] = None
    store_id: Optional[uuid.UUID] = None
    payment_status: Optional[PaymentStatus] = None
    status_changed: bool = False


async def settle_payment(
    db: AsyncSession,
    reference: Optional[str],
    result_code: Optional[str],
    transaction_id: Optional[str],
) -> PaymentSettlement:
    """
    Apply a gateway result to the order whose ``order_number`` is ``reference``.

    A callback without a result code changes nothing.
    Only an order still ``awaiting_payment`` is touched, so a replayed or late
    callback never overwrites an earlier result. The order ``status`` follows
    the payment (``paid`` / ``canceled``) only while it is still ``pending``;
    a seller who already moved the order on keeps their status.
    """
    if not reference:
        return PaymentSettlement(SettlementOutcome.NOT_FOUND)
    if result_code is None or not str(result_code).strip():
        return PaymentSettlement(SettlementOutcome.INCOMPLETE)

    result = await db.execute(
        select(Order.id, Order.store_id, Order.status).where(
            Order.order_number == reference
        )
    )
    row = result.one_or_none()
    if row is None:
        return PaymentSettlement(SettlementOutcome.NOT_FOUND)

    order_id, store_id, old_status = row
    succeeded = result_code == MPESA_SUCCESS_CODE
    now = utc_now()

    payment_values: dict = {
        "payment_status": PaymentStatus.PAID if succeeded else PaymentStatus.FAILED,
        "mpesa_transaction_id": transaction_id,
    }
    if succeeded:
        payment_values["paid_at"] = now

    paid = await db.execute(
        update(Order)
        .where(
            Order.id == order_id,
            Order.payment_status == PaymentStatus.AWAITING_PAYMENT,
        )
        .values(**payment_values)
        .execution_options(synchronize_session=False)
    )
    if paid.rowcount == 0:
        await db.rollback()
        return PaymentSettlement(SettlementOutcome.DUPLICATE, order_id, store_id)

    target = OrderStatus.PAID if succeeded else OrderStatus.CANCELED
    status_values: dict = {"status": target}
    if target == OrderStatus.CANCELED:
        status_values["canceled_at"] = now
    moved = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status == OrderStatus.PENDING)
        .values(**status_values)
        .execution_options(synchronize_session=False)
    )
    status_changed = moved.rowcount > 0

    await log_order_audit(
        db,
        order_id,
        "payment_confirmed" if succeeded else "payment_failed",
        WEBHOOK_ACTOR,
        old_value={
            "status": old_status.value,
            "payment_status": PaymentStatus.AWAITING_PAYMENT.value,
        },
        new_value={
            "status": target.value if status_changed else old_status.value,
            "payment_status": payment_values["payment_status"].value,
            "mpesa_transaction_id": transaction_id,
        },
        notes=f"result_code={result_code}",
    )
    db.add(
        Notification(
            store_id=store_id,
            order_id=order_id,
            type=NotificationType.STATUS_UPDATE,
            title="Payment confirmed" if succeeded else "Payment failed",
            message=(
                f"M-Pesa payment for order {reference} was confirmed."
                if succeeded
                else f"M-Pesa payment for order {reference} failed (code {result_code})."
            ),
        )
    )
    await db.commit()

    return PaymentSettlement(
        SettlementOutcome.APPLIED,
        order_id,
        store_id,
        payment_values["payment_status"],
        status_changed,
    )
