"""arq configuration helpers.

Turns the application's REDIS_URL into arq ``RedisSettings`` so the catalog
worker and the cache share one connection definition.
"""

from urllib.parse import urlparse

from arq.connections import RedisSettings

from libs.common.config import get_settings


def get_redis_settings() -> RedisSettings:
    """Parse REDIS_URL (``redis://`` or ``rediss://``) into arq RedisSettings."""
    parsed = urlparse(get_settings().REDIS_URL)

    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        database=int(parsed.path.lstrip("/") or "0"),
        password=parsed.password,
        ssl=parsed.scheme == "rediss",
        conn_timeout=5,
    )
