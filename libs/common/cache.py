"""Per-store cache of seller views (order list pages, dashboard metrics).

The cache is an optimisation only. Every helper fails open: when Redis is
unreachable or caching is disabled, reads miss and writes/invalidations are
skipped with a warning.

Usage:
    from libs.common.cache import (
        dashboard_metrics_key,
        get_cached_json,
        invalidate_store_views,
        set_cached_json,
    )

    cached = await get_cached_json(dashboard_metrics_key(store_id))
    ...
    await invalidate_store_views(store_id)
"""
import json
from typing import Any, Optional

from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.common.redis import get_redis

logger = get_logger(__name__)


def order_list_key(store_id: str, status: Optional[str], skip: int, limit: int) -> str:
    return f"store:{store_id}:orders:{status or 'all'}:{skip}:{limit}"


def order_list_pattern(store_id: str) -> str:
    return f"store:{store_id}:orders:*"


def dashboard_metrics_key(store_id: str) -> str:
    return f"store:{store_id}:dashboard_metrics"


async def get_cached_json(key: str) -> Optional[Any]:
    """Return the decoded cached value, or None on miss / Redis failure."""
    if not get_settings().CACHE_ENABLED:
        return None
    try:
        redis = await get_redis()
        raw = await redis.get(key)
        return json.loads(raw) if raw else None
    except Exception as e:
        logger.warning(f"Cache read failed for {key}: {e}")
        return None


async def set_cached_json(key: str, value: Any, ttl: Optional[int] = None) -> bool:
    settings = get_settings()
    if not settings.CACHE_ENABLED:
        return False
    try:
        redis = await get_redis()
        await redis.set(
            key,
            json.dumps(value, default=str),
            ex=ttl or settings.ORDER_CACHE_TTL_SECONDS,
        )
        return True
    except Exception as e:
        logger.warning(f"Cache write failed for {key}: {e}")
        return False


async def invalidate_store_views(store_id: str) -> bool:
    """
    Drop the cached order list pages and dashboard metrics of one store.

    Returns:
        True if the keys were removed, False if caching is off or Redis failed
    """
    if not get_settings().CACHE_ENABLED:
        return False
    try:
        redis = await get_redis()
        keys = [key async for key in redis.scan_iter(match=order_list_pattern(store_id))]
        keys.append(dashboard_metrics_key(store_id))
        await redis.delete(*keys)
        logger.debug(f"Invalidated {len(keys)} cached views for store {store_id}")
        return True
    except Exception as e:
        logger.warning(f"Cache invalidation failed for store {store_id}: {e}")
        return False
