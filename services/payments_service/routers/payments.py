"""M-Pesa payment initiation for seller orders."""

import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.orders_service.models import Order, PaymentStatus
from services.payments_service.mpesa_client import (
    MpesaClient,
    MpesaValidationError,
    get_mpesa_client,
    validate_payment_request,
)
from services.payments_service.schemas import (
    MpesaInitiateRequest,
    MpesaInitiateResponse,
)
from services.stores_service.dependencies import get_current_store
from services.stores_service.models import Store
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments", tags=["payments"])
logger = get_logger(__name__)


def get_configured_mpesa_client() -> MpesaClient:
    try:
        return get_mpesa_client()
    except ValueError:
        raise HTTPException(status_code=503, detail="M-Pesa payments are not configured")


async def _get_store_order(
    db: AsyncSession, store_id: uuid.UUID, order_id: uuid.UUID
) -> Order:
    result = await db.execute(
        select(Order).where(Order.id == order_id, Order.store_id == store_id)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("/mpesa/initiate", response_model=MpesaInitiateResponse)
async def initiate_mpesa_payment(
    payload: MpesaInitiateRequest,
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_async_db),
    client: MpesaClient = Depends(get_configured_mpesa_client),
):
    """
    Ask M-Pesa to push a payment prompt to the buyer's phone.

    ``success`` means the prompt was sent, not that the order is paid; the
    order only changes when the confirmation webhook arrives.
    """
    try:
        validate_payment_request(payload.amount, payload.msisdn)
    except MpesaValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)

    order = await _get_store_order(db, store.id, payload.order_id)
    if order.payment_status != PaymentStatus.AWAITING_PAYMENT:
        raise HTTPException(status_code=409, detail="Order is not awaiting payment")
    if payload.third_party_ref != order.order_number:
        raise HTTPException(
            status_code=400, detail="thirdPartyRef must be the order number"
        )
    if Decimal(payload.amount).quantize(Decimal("0.01")) != order.total_amount:
        raise HTTPException(status_code=400, detail="Amount does not match the order total")

    result = await client.initiate_c2b_payment(
        amount=payload.amount,
        msisdn=payload.msisdn,
        order_id=str(order.id),
        third_party_ref=order.order_number,
    )
    if not result.success:
        logger.warning(
            f"M-Pesa initiation rejected for {order.order_number}: {result.error}",
            extra={"extra_fields": {"order_id": str(order.id)}},
        )
    return MpesaInitiateResponse(**result.to_dict())
