"""Seller notification feed: list, mark read, mark all read."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from libs.db.session import get_async_db
from services.orders_service.models import Notification
from services.orders_service.schemas import MarkAllReadResponse, NotificationResponse
from services.stores_service.dependencies import get_current_store
from services.stores_service.models import Store
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_async_db),
):
    query = select(Notification).where(Notification.store_id == store.id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    result = await db.execute(
        query.order_by(Notification.created_at.desc()).limit(limit)
    )
    return result.scalars().all()


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_notifications_read(
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_async_db),
):
    result = await db.execute(
        update(Notification)
        .where(Notification.store_id == store.id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return MarkAllReadResponse(updated=result.rowcount)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: uuid.UUID,
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_async_db),
):
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id, Notification.store_id == store.id
        )
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")

    if not notification.is_read:
        notification.is_read = True
        await db.commit()
        await db.refresh(notification)
    return notification
