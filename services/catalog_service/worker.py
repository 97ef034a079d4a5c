"""arq worker for storage reconciliation."""

from arq import cron
from libs.common.arq_config import get_redis_settings
from libs.common.logging import configure_logging, get_logger

logger = get_logger(__name__)


async def task_sweep_product_images(ctx: dict):
    from services.catalog_service.tasks import sweep_orphaned_product_images

    scanned, removed = await sweep_orphaned_product_images()
    logger.info(f"Product image sweep: scanned={scanned} removed={removed}")


async def task_sweep_store_logos(ctx: dict):
    from services.catalog_service.tasks import sweep_orphaned_store_logos

    scanned, removed = await sweep_orphaned_store_logos()
    logger.info(f"Store logo sweep: scanned={scanned} removed={removed}")


async def startup(ctx: dict):
    configure_logging()


class WorkerSettings:
    redis_settings = get_redis_settings()
    on_startup = startup

    functions = [
        task_sweep_product_images,
        task_sweep_store_logos,
    ]

    cron_jobs = [
        cron(task_sweep_product_images, hour={3}, minute={0}),
        cron(task_sweep_store_logos, hour={3}, minute={30}),
    ]
