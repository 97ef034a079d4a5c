"""Resolve the authenticated seller's store for store-scoped routes."""

from typing import Optional

from fastapi import Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.stores_service.models import Profile, Store
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def get_profile(db: AsyncSession, user: AuthUser) -> Optional[Profile]:
    return await db.get(Profile, user.user_id)


async def get_or_create_store(db: AsyncSession, user: AuthUser) -> Store:
    """Fetch the seller's store, creating a default one on first access."""
    result = await db.execute(select(Store).where(Store.seller_id == user.user_id))
    store = result.scalar_one_or_none()
    if store:
        return store

    profile = await get_profile(db, user)
    first_name = (profile.first_name if profile else None) or user.first_name
    store = Store(seller_id=user.user_id, name=Store.default_name(first_name))
    db.add(store)
    try:
        await db.commit()
    except IntegrityError:
        # Another request created it first
        await db.rollback()
        result = await db.execute(select(Store).where(Store.seller_id == user.user_id))
        return result.scalar_one()

    await db.refresh(store)
    logger.info(
        f"Created default store for seller {user.user_id}",
        extra={"extra_fields": {"store_id": str(store.id)}},
    )
    return store


async def get_current_store(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
) -> Store:
    return await get_or_create_store(db, current_user)
