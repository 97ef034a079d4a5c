"""WebSocket delivery of the new-order relay to a connected seller."""

from dataclasses import dataclass
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from libs.auth.dependencies import InvalidTokenError, decode_access_token
from libs.auth.models import AuthUser
from libs.auth.session import SessionContext
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.orders_service.realtime import RealtimeLifecycle
from services.stores_service.dependencies import get_or_create_store, get_profile
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/orders", tags=["realtime"])
logger = get_logger(__name__)

POLICY_VIOLATION = 1008


@dataclass
class RealtimeSeller:
    user: AuthUser
    store_id: str
    profile: Optional[dict[str, Any]] = None


async def get_realtime_seller(
    token: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_db),
) -> Optional[RealtimeSeller]:
    """Browsers cannot set headers on a WebSocket, so the JWT comes in ``?token=``."""
    if not token:
        return None
    try:
        user = decode_access_token(token)
    except InvalidTokenError:
        return None

    store = await get_or_create_store(db, user)
    profile = await get_profile(db, user)
    seller = RealtimeSeller(
        user=user,
        store_id=str(store.id),
        profile=(
            {"first_name": profile.first_name, "last_name": profile.last_name}
            if profile
            else None
        ),
    )
    # Release the connection; the socket may stay open for hours
    await db.commit()
    return seller


@router.websocket("/realtime/ws")
async def orders_realtime(
    websocket: WebSocket,
    seller: Optional[RealtimeSeller] = Depends(get_realtime_seller),
):
    """
    Live new-order feed for the seller's store.

    Server messages: ``subscription_status``, ``request_notification_permission``,
    ``notification_permission_ack``, ``order_inserted``,
    ``desktop_notification``, ``warning``.
    Client messages: ``notification_permission`` (``granted``/``denied``),
    ``sign_out``.
    """
    if seller is None:
        await websocket.close(code=POLICY_VIOLATION)
        return

    await websocket.accept()
    context = SessionContext()

    async def send(message: dict[str, Any]) -> None:
        await websocket.send_json(message)

    lifecycle = RealtimeLifecycle(context, send)
    try:
        await context.sign_in(seller.user, seller.profile)
        await lifecycle.set_store(seller.store_id)
        await send({"type": "request_notification_permission"})

        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                logger.debug("Ignoring realtime client frame that is not JSON")
                continue
            if not isinstance(message, dict):
                logger.debug("Ignoring realtime client message that is not an object")
                continue
            kind = message.get("type")
            if kind == "notification_permission":
                granted = message.get("permission") == "granted"
                lifecycle.set_permission(granted)
                await send({"type": "notification_permission_ack", "granted": granted})
            elif kind == "sign_out":
                await context.sign_out()
                await websocket.close()
                break
            else:
                logger.debug(f"Ignoring realtime client message {kind!r}")
    except WebSocketDisconnect:
        logger.debug(f"Seller {seller.user.user_id} disconnected from realtime feed")
    finally:
        await lifecycle.close()
