import logging
import time
import uuid
from typing import Optional

import redis
import redis.asyncio as aioredis

from relay.reliability.rate_limiter import SlidingWindowRateLimiter

logger = logging.getLogger("relay.ratelimit")


LUA_SCRIPT = """
local key = KEYS[1]
local window_ms = tonumber(ARGV[1])
local max_requests = tonumber(ARGV[2])
local now = tonumber(ARGV[3])
local member = ARGV[4]

redis.call("ZREMRANGEBYSCORE", key, "-inf", now - window_ms)
redis.call("ZADD", key, now, member)
local count = redis.call("ZCARD", key)
redis.call("PEXPIRE", key, window_ms)

if count > max_requests then
    return 1
end

return 0
"""


class RedisRateLimiter:
    """
    Sliding window limiter shared by every instance pointing at one Redis.
    While Redis is failing, requests are counted by a local in-memory
    limiter with the same window.
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        window_ms: int,
        max_requests: int,
        key_prefix: str = "relay:rl",
        fallback: Optional[SlidingWindowRateLimiter] = None,
    ):
        self.r = redis_client
        self.window_ms = window_ms
        self.max_requests = max_requests
        self.key_prefix = key_prefix
        self.fallback = fallback or SlidingWindowRateLimiter(
            window_ms=window_ms,
            max_requests=max_requests,
        )

        self._script = self.r.register_script(LUA_SCRIPT)

    async def check(self, client_id: str) -> bool:
        key = f"{self.key_prefix}:{client_id}"
        now_ms = int(time.time() * 1000)

        try:
            limited = await self._script(
                keys=[key],
                args=[self.window_ms, self.max_requests, now_ms, f"{now_ms}-{uuid.uuid4().hex[:8]}"],
            )
        except redis.RedisError as e:
            logger.warning("Redis rate limit check failed (%s), counting in memory", e)
            return self.fallback.check(client_id)

        return bool(int(limited))
