"""Seller store endpoints."""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from libs.common.logging import get_logger
from libs.common.storage import StorageError, StorageService, get_logos_storage
from libs.db.session import get_async_db
from services.stores_service.dependencies import get_current_store
from services.stores_service.models import Store
from services.stores_service.schemas import StoreResponse, StoreUpdate
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/stores", tags=["stores"])
logger = get_logger(__name__)


@router.get("/me", response_model=StoreResponse)
async def get_my_store(store: Store = Depends(get_current_store)):
    """Return the seller's store, creating a default one on first visit."""
    return store


@router.patch("/me", response_model=StoreResponse)
async def update_my_store(
    payload: StoreUpdate,
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_async_db),
):
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(store, field, value)
    await db.commit()
    await db.refresh(store)
    return store


@router.post("/me/logo", response_model=StoreResponse)
async def upload_store_logo(
    file: UploadFile = File(...),
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_async_db),
    storage: StorageService = Depends(get_logos_storage),
):
    """Upload a new logo and point the store at it. The old object is removed best-effort."""
    data = await file.read()
    try:
        url = await storage.upload(
            store.seller_id,
            data,
            file.filename or "logo.png",
            file.content_type or "image/png",
        )
    except StorageError as e:
        raise HTTPException(status_code=400, detail=e.message)

    previous = store.logo_url
    store.logo_url = url
    await db.commit()
    await db.refresh(store)

    if previous and previous != url:
        await storage.delete_urls([previous])
    return store
