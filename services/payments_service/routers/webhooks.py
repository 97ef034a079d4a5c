"""M-Pesa C2B result callback."""

import hmac
import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from libs.common.cache import invalidate_store_views
from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.orders_service.state_machine import SettlementOutcome, settle_payment
from services.payments_service.schemas import MpesaCallback, MpesaCallbackAck
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments", tags=["payments"])
logger = get_logger(__name__)

ACCEPTED = "Successfully Accepted Result"
ACCEPTED_ORDER_NOT_FOUND = "Successfully Accepted Result, but Order not found"


def _client_ip(request: Request) -> Optional[str]:
    """
    Caller address for the allowlist. Behind N trusted proxies this is the
    Nth X-Forwarded-For entry from the right; entries further left are
    caller-supplied and never used.
    """
    hops = get_settings().TRUSTED_PROXY_HOPS
    if hops <= 0:
        return request.client.host if request.client else None
    forwarded = [
        entry.strip()
        for entry in request.headers.get("x-forwarded-for", "").split(",")
        if entry.strip()
    ]
    if len(forwarded) < hops:
        return None
    return forwarded[-hops]


def _verify_mpesa_caller(request: Request) -> bool:
    """Shared-secret and IP allowlist checks; each applies only when configured."""
    settings = get_settings()

    if settings.MPESA_WEBHOOK_SECRET:
        presented = (
            request.headers.get("x-mpesa-webhook-token")
            or request.query_params.get("token")
            or ""
        )
        if not hmac.compare_digest(
            presented.encode("utf-8"), settings.MPESA_WEBHOOK_SECRET.encode("utf-8")
        ):
            return False

    allowed = settings.webhook_allowed_ips
    if allowed and _client_ip(request) not in allowed:
        return False

    if not settings.MPESA_WEBHOOK_SECRET and not allowed and settings.ENVIRONMENT == "production":
        logger.warning("M-Pesa webhook accepted without secret or IP allowlist configured")
    return True


def _ack(callback: MpesaCallback, description: str) -> MpesaCallbackAck:
    return MpesaCallbackAck(
        output_OriginalConversationID=callback.conversation_id,
        output_ResponseDesc=description,
        output_ResponseCode="0",
        output_ThirdPartyConversationID=callback.third_party_reference,
    )


@router.post("/webhooks/mpesa", response_model=MpesaCallbackAck)
async def mpesa_webhook(
    request: Request,
    db: AsyncSession = Depends(get_async_db),
):
    """
    M-Pesa result callback (no user auth; verified by shared secret / IP).

    Once the caller is verified the gateway always gets a 200 acceptance,
    whether or not the order was found or updated, so it stops redelivering.
    Redelivery of an already-applied result changes nothing.
    """
    if not _verify_mpesa_caller(request):
        logger.warning(
            "Rejected M-Pesa callback from unverified caller",
            extra={"extra_fields": {"client_ip": _client_ip(request)}},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook credentials"
        )

    raw = await request.body()
    try:
        payload = json.loads(raw.decode("utf-8") or "{}")
    except (UnicodeDecodeError, ValueError):
        payload = {}
    callback = MpesaCallback.model_validate(payload if isinstance(payload, dict) else {})
    reference = callback.third_party_reference

    try:
        settlement = await settle_payment(
            db, reference, callback.result_code, callback.transaction_id
        )
    except Exception:
        logger.exception(
            f"Failed to apply M-Pesa result for {reference}",
            extra={"extra_fields": {"reference": reference}},
        )
        await db.rollback()
        return _ack(callback, ACCEPTED)

    if settlement.outcome == SettlementOutcome.NOT_FOUND:
        logger.warning(
            f"M-Pesa callback for unknown order reference: {reference}",
            extra={"extra_fields": {
                "reference": reference,
                "result_code": callback.result_code,
                "transaction_id": callback.transaction_id,
            }},
        )
        return _ack(callback, ACCEPTED_ORDER_NOT_FOUND)

    if settlement.outcome == SettlementOutcome.INCOMPLETE:
        logger.warning(
            f"M-Pesa callback for {reference} has no result code; ignored",
            extra={"extra_fields": {
                "reference": reference,
                "transaction_id": callback.transaction_id,
            }},
        )
        return _ack(callback, ACCEPTED)

    if settlement.outcome == SettlementOutcome.DUPLICATE:
        logger.info(
            f"M-Pesa callback for {reference} skipped - payment already settled",
            extra={"extra_fields": {
                "order_id": str(settlement.order_id),
                "transaction_id": callback.transaction_id,
            }},
        )
        return _ack(callback, ACCEPTED)

    logger.info(
        f"M-Pesa result applied to {reference}: {settlement.payment_status.value}",
        extra={"extra_fields": {
            "order_id": str(settlement.order_id),
            "status_changed": settlement.status_changed,
        }},
    )
    await invalidate_store_views(str(settlement.store_id))
    return _ack(callback, ACCEPTED)
