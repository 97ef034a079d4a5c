"""Seller product endpoints."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.common.storage import StorageError, StorageService, get_products_storage
from libs.db.session import get_async_db
from services.catalog_service.models import Product, ProductImage, ProductVariant
from services.catalog_service.schemas import ProductResponse, ProductSave, UploadResponse
from services.stores_service.dependencies import get_current_store
from services.stores_service.models import Store
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

router = APIRouter(prefix="/products", tags=["products"])
logger = get_logger(__name__)


async def _get_product(
    db: AsyncSession, store_id: uuid.UUID, product_id: uuid.UUID
) -> Product:
    result = await db.execute(
        select(Product)
        .where(Product.id == product_id, Product.store_id == store_id)
        .options(selectinload(Product.variants), selectinload(Product.images))
        .execution_options(populate_existing=True)
    )
    product = result.scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def _detailed_urls(product: Product) -> set[str]:
    return {image["url"] for image in product.detailed_images or []}


def _apply_product_state(product: Product, payload: ProductSave) -> set[str]:
    """
    Mutate ``product`` (variants and images loaded) to match ``payload``.

    Returns the URLs no longer referenced, for storage cleanup after commit.
    """
    previous_urls = {image.image_url for image in product.images} | _detailed_urls(product)

    product.name = payload.name
    product.description = payload.description
    product.category = payload.category
    product.shipping_cost = payload.shipping_cost
    product.specifications = [spec.model_dump() for spec in payload.specifications]
    product.detailed_images = [
        image.model_dump()
        for image in sorted(payload.detailed_images, key=lambda i: i.sort_order)
    ]

    existing_variants = {variant.id: variant for variant in product.variants}
    variants = []
    for variant_in in payload.variants:
        if variant_in.id is not None:
            variant = existing_variants.get(variant_in.id)
            if variant is None:
                raise HTTPException(
                    status_code=400, detail=f"Unknown variant {variant_in.id}"
                )
        else:
            variant = ProductVariant(store_id=product.store_id)
        variant.name = variant_in.name
        variant.price = variant_in.price
        variant.stock = variant_in.stock
        variants.append(variant)
    product.variants = variants

    existing_images = {image.image_url: image for image in product.images}
    images = []
    for position, url in enumerate(payload.image_urls):
        image = existing_images.get(url) or ProductImage(image_url=url)
        image.sort_order = position
        images.append(image)
    product.images = images

    current_urls = set(payload.image_urls) | _detailed_urls(product)
    return previous_urls - current_urls


@router.get("", response_model=list[ProductResponse])
async def list_products(
    category: Optional[str] = None,
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_async_db),
):
    query = (
        select(Product)
        .where(Product.store_id == store.id)
        .options(selectinload(Product.variants), selectinload(Product.images))
        .order_by(Product.created_at.desc())
    )
    if category:
        query = query.where(Product.category == category)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: uuid.UUID,
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_async_db),
):
    return await _get_product(db, store.id, product_id)


@router.put("", response_model=ProductResponse, status_code=201)
@router.put("/{product_id}", response_model=ProductResponse)
async def save_product(
    payload: ProductSave,
    product_id: Optional[uuid.UUID] = None,
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_async_db),
    storage: StorageService = Depends(get_products_storage),
):
    """
    Create or replace a product with its variants and images in one
    transaction. Files of removed images are deleted after the commit;
    anything that fails there is left to the orphan sweep.
    """
    if product_id is None:
        product = Product(store_id=store.id, variants=[], images=[], detailed_images=[])
        db.add(product)
    else:
        product = await _get_product(db, store.id, product_id)

    try:
        removed_urls = _apply_product_state(product, payload)
    except HTTPException:
        await db.rollback()
        raise
    await db.commit()

    if removed_urls:
        await storage.delete_urls(sorted(removed_urls))

    logger.info(
        f"Saved product {product.id}",
        extra={"extra_fields": {
            "store_id": str(store.id),
            "variants": len(payload.variants),
            "removed_images": len(removed_urls),
        }},
    )
    return await _get_product(db, store.id, product.id)


@router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: uuid.UUID,
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_async_db),
    storage: StorageService = Depends(get_products_storage),
):
    product = await _get_product(db, store.id, product_id)
    urls = [image.image_url for image in product.images] + sorted(_detailed_urls(product))
    await db.delete(product)
    await db.commit()
    await storage.delete_urls(urls)


@router.post("/images", response_model=UploadResponse, status_code=201)
async def upload_product_image(
    file: UploadFile = File(...),
    current_user: AuthUser = Depends(get_current_user),
    storage: StorageService = Depends(get_products_storage),
):
    """Upload one image into the seller's folder; reference the URL in a later save."""
    data = await file.read()
    try:
        url = await storage.upload(
            current_user.user_id,
            data,
            file.filename or "image.jpg",
            file.content_type or "image/jpeg",
        )
    except StorageError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return UploadResponse(url=url)
