import logging
from typing import Optional

import redis
import redis.asyncio as aioredis

logger = logging.getLogger("relay.storage")


def get_redis_client(url: Optional[str]) -> Optional[aioredis.Redis]:
    """
    Async client for ``url``, or None when unset or unusable. Reachability
    is checked once at startup with a blocking ping.
    """
    if not url:
        return None

    try:
        # test connection before returning
        conn = redis.Redis.from_url(url, socket_connect_timeout=2)
        try:
            conn.ping()
        finally:
            conn.close()
        return aioredis.from_url(url, decode_responses=True)
    except (redis.RedisError, ValueError, OSError) as e:
        logger.warning("Redis unavailable at startup (%s), using in-memory rate limiter", e)
        return None
