# app/middlewares/rate_limit.py
import time
from typing import Dict, Optional, Tuple

from fastapi import Request
from redis.asyncio import Redis
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

RATE_LIMITED_PREFIXES = ("/scans", "/api/scans")
RATE_LIMIT_MESSAGE = "Too Many Requests - Rate limit exceeded."


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed-window limit per client IP on the scan endpoints. Counters live in
    Redis when configured so every API replica shares them, in memory
    otherwise.
    """

    def __init__(
        self,
        app,
        max_requests: int = 60,
        window_seconds: int = 60,
        allow_list=("127.0.0.1",),
        redis_url: Optional[str] = None,
        force_in_memory: bool = False,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.allow_list = set(allow_list or ())
        self.redis_url = None if force_in_memory else redis_url
        self.redis = None
        self.memory_store: Dict[str, Tuple[int, float]] = {}

    async def dispatch(self, request: Request, call_next):
        client_ip = request.client.host if request.client else "testclient"

        # Skip limit if allow-listed
        if client_ip in self.allow_list:
            return await call_next(request)

        if not request.url.path.startswith(RATE_LIMITED_PREFIXES):
            return await call_next(request)

        if self.redis_url:
            retry_after = await self._hit_redis(client_ip)
        else:
            retry_after = self._hit_memory(client_ip)

        if retry_after is not None:
            return JSONResponse(
                status_code=429,
                content={"error": RATE_LIMIT_MESSAGE},
                headers={"Retry-After": str(max(retry_after, 1))},
            )
        return await call_next(request)

    def _hit_memory(self, client_ip: str) -> Optional[int]:
        now = time.time()
        count, expiry = self.memory_store.get(client_ip, (0, now + self.window_seconds))

        if now > expiry:
            count = 0
            expiry = now + self.window_seconds

        if count >= self.max_requests:
            return int(expiry - now)

        self.memory_store[client_ip] = (count + 1, expiry)
        return None

    async def _hit_redis(self, client_ip: str) -> Optional[int]:
        if self.redis is None:
            self.redis = Redis.from_url(self.redis_url, decode_responses=True)

        key = f"rl:{client_ip}"
        count = await self.redis.incr(key)
        if count == 1:
            await self.redis.expire(key, self.window_seconds)
        if count > self.max_requests:
            ttl = await self.redis.ttl(key)
            return ttl if ttl and ttl > 0 else self.window_seconds
        return None
