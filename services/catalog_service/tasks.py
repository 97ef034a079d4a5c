"""Storage reconciliation for catalog and store images.

Product saves delete the files of removed images only best-effort, after the
database commit. Anything left behind (failed deletes, uploads that were
never saved into a product) is removed here once it is older than the grace
period.
"""

from libs.common.config import get_settings
from libs.common.datetime_utils import is_older_than
from libs.common.logging import get_logger
from libs.common.storage import StorageService, get_logos_storage, get_products_storage
from libs.db.config import AsyncSessionLocal
from services.catalog_service.models import Product, ProductImage
from services.stores_service.models import Store
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def referenced_product_urls(db: AsyncSession) -> set[str]:
    urls = set((await db.execute(select(ProductImage.image_url))).scalars().all())
    for detailed in (await db.execute(select(Product.detailed_images))).scalars().all():
        urls.update(image["url"] for image in detailed or [] if image.get("url"))
    return urls


async def referenced_logo_urls(db: AsyncSession) -> set[str]:
    result = await db.execute(select(Store.logo_url).where(Store.logo_url.is_not(None)))
    return set(result.scalars().all())


async def sweep_orphaned_objects(
    storage: StorageService,
    referenced_urls: set[str],
    grace_seconds: int,
) -> tuple[int, int]:
    """
    Remove objects of ``storage`` that no URL references and that are older
    than ``grace_seconds``. Returns ``(scanned, removed)``.
    """
    referenced_paths = {
        path for path in (storage.path_from_url(url) for url in referenced_urls) if path
    }
    objects = await storage.list_objects()
    orphans = [
        obj.path
        for obj in objects
        if obj.path not in referenced_paths
        # No timestamp: possibly mid-upload
        and obj.created_at is not None
        and is_older_than(obj.created_at, grace_seconds)
    ]
    await storage.remove_paths(orphans)
    if orphans:
        logger.info(
            f"Removed {len(orphans)} orphaned objects from {storage.bucket}",
            extra={"extra_fields": {"paths": orphans[:50]}},
        )
    return len(objects), len(orphans)


async def sweep_orphaned_product_images() -> tuple[int, int]:
    async with AsyncSessionLocal() as db:
        urls = await referenced_product_urls(db)
    return await sweep_orphaned_objects(
        get_products_storage(), urls, get_settings().STORAGE_ORPHAN_GRACE_SECONDS
    )


async def sweep_orphaned_store_logos() -> tuple[int, int]:
    async with AsyncSessionLocal() as db:
        urls = await referenced_logo_urls(db)
    return await sweep_orphaned_objects(
        get_logos_storage(), urls, get_settings().STORAGE_ORPHAN_GRACE_SECONDS
    )
