"""Redis cache configuration and utilities."""
import hashlib
import json
import logging
from typing import Optional, Callable
from fastapi import Request, Response
from fastapi_cache import FastAPICache
from fastapi_cache.backends.inmemory import InMemoryBackend
from fastapi_cache.backends.redis import RedisBackend
from fastapi_cache.decorator import cache
from redis import asyncio as aioredis

from app.config import settings

logger = logging.getLogger(__name__)

CACHE_PREFIX = "sentinel-os"

# Global redis client reference
redis_client: Optional[aioredis.Redis] = None


def custom_key_builder(
    func: Callable,
    namespace: str = "",
    request: Request = None,
    response: Response = None,
    args: tuple = None,
    kwargs: dict = None,
) -> str:
    """Cache key from the endpoint name plus hashed path and query parameters."""
    prefix = f"{FastAPICache.get_prefix()}:{namespace}:{func.__module__}:{func.__name__}"

    # Sessions are per-request objects and must not leak into the key
    if kwargs:
        key_kwargs = {k: v for k, v in kwargs.items() if k not in ("session", "request", "response")}
        if key_kwargs:
            kwargs_str = json.dumps(sorted(key_kwargs.items()), sort_keys=True, default=str)
            prefix = f"{prefix}:{hashlib.md5(kwargs_str.encode()).hexdigest()[:8]}"

    if request and request.query_params:
        query_str = str(sorted(request.query_params.items()))
        prefix = f"{prefix}:q:{hashlib.md5(query_str.encode()).hexdigest()[:8]}"

    return prefix


async def init_cache():
    """Initialize Redis cache, or the in-memory backend when Redis is off or unreachable."""
    global redis_client

    if not settings.cache_enabled:
        FastAPICache.init(InMemoryBackend(), prefix=CACHE_PREFIX, key_builder=custom_key_builder)
        return

    try:
        redis_client = aioredis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=False,
        )
        await redis_client.ping()

        FastAPICache.init(
            RedisBackend(redis_client),
            prefix=CACHE_PREFIX,
            key_builder=custom_key_builder,
        )
        logger.info(f"✅ Redis cache initialized: {settings.redis_url}")
    except Exception as e:
        logger.warning(f"⚠️ Redis connection failed: {e}. Using in-memory cache.")
        redis_client = None
        FastAPICache.init(InMemoryBackend(), prefix=CACHE_PREFIX, key_builder=custom_key_builder)


async def close_cache():
    """Close Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.close()
        redis_client = None


async def clear_cache(pattern: str = "*"):
    """Clear Redis entries matching pattern. No-op on the in-memory backend."""
    if redis_client:
        full_pattern = f"{FastAPICache.get_prefix()}:{pattern}"
        async for key in redis_client.scan_iter(match=full_pattern):
            await redis_client.delete(key)


__all__ = ["cache", "init_cache", "close_cache", "clear_cache", "custom_key_builder"]
