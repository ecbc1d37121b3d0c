"""
Redis connection shared by the listing page cache.
Supports both standard Redis and managed Redis URLs.
"""

import logging
from typing import Optional

import redis

from .config import REDIS_DB, REDIS_HOST, REDIS_PASSWORD, REDIS_PORT, REDIS_SSL, REDIS_URL

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None


def _mask_url(url: str) -> str:
    if "@" in url:
        url_parts = url.split("@")
        protocol = url_parts[0].split(":")[0]
        return f"{protocol}:****@{url_parts[1]}"
    return "****"


def get_redis_client() -> redis.Redis:
    """Get or create the Redis client"""
    global redis_client

    if redis_client is None:
        logger.info("🔄 Initializing Redis connection for listing cache...")

        if REDIS_URL:
            logger.info(f"📡 Using Redis URL connection: {_mask_url(REDIS_URL)}")
            try:
                client = redis.from_url(
                    REDIS_URL,
                    decode_responses=True,
                    socket_connect_timeout=15,
                    socket_timeout=30,
                    retry_on_timeout=True,
                    health_check_interval=30,
                    max_connections=20,
                )
                client.ping()
                logger.info("Redis connected successfully via URL")
            except Exception as e:
                logger.error(f"❌ Failed to connect to Redis via URL: {str(e)}")
                logger.error("⚠️ Listing pages will not be cached (fail-open mode)")
                raise
        else:
            logger.info(f"📡 Using Redis at {REDIS_HOST}:{REDIS_PORT} db={REDIS_DB}")
            try:
                client = redis.Redis(
                    host=REDIS_HOST,
                    port=REDIS_PORT,
                    password=REDIS_PASSWORD,
                    db=REDIS_DB,
                    ssl=REDIS_SSL,
                    decode_responses=True,
                    socket_connect_timeout=15,
                    socket_timeout=30,
                    retry_on_timeout=True,
                    health_check_interval=30,
                    max_connections=20,
                )
                client.ping()
                ssl_status = "with SSL" if REDIS_SSL else "without SSL"
                logger.info(f"Redis connected successfully at {REDIS_HOST}:{REDIS_PORT} ({ssl_status})")
            except Exception as e:
                logger.error(f"❌ Failed to connect to Redis: {str(e)}")
                logger.error("⚠️ Listing pages will not be cached (fail-open mode)")
                raise

        redis_client = client

    return redis_client
