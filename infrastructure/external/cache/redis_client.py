"""
Shared Redis connection used for cross-process order locks
"""
from __future__ import annotations

import asyncio
import socket
from typing import Optional

from redis import asyncio as aioredis

from core.config import settings
from core.logging_config import get_logger

logger = get_logger(__name__)


_redis_client: Optional[aioredis.Redis] = None
_lock = asyncio.Lock()


async def init_redis_client(**kwargs) -> aioredis.Redis:
    """
    Create the process-wide Redis connection (idempotent)

    Args:
        **kwargs: extra redis connection arguments

    Returns:
        connected client
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    async with _lock:
        if _redis_client is not None:
            return _redis_client

        if not settings.redis.url:
            raise RuntimeError("REDIS__URL is not configured")

        keepalive_opts = {}
        if hasattr(socket, "TCP_KEEPIDLE") and hasattr(socket, "TCP_KEEPINTVL") and hasattr(socket, "TCP_KEEPCNT"):
            keepalive_opts = {
                socket.TCP_KEEPIDLE: 1,
                socket.TCP_KEEPINTVL: 1,
                socket.TCP_KEEPCNT: 3,
            }

        client = aioredis.from_url(
            settings.redis.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.redis.max_connections,
            socket_keepalive=True,
            socket_keepalive_options=keepalive_opts,
            **kwargs
        )
        try:
            await client.ping()
        except Exception as e:
            logger.error("redis_init_failed", error=str(e))
            await client.aclose()
            raise

        _redis_client = client
        logger.info("redis_initialized")
        return _redis_client


async def shutdown_redis_client() -> None:
    """Close the shared connection"""
    global _redis_client

    if _redis_client is not None:
        try:
            await _redis_client.aclose()
            logger.info("redis_closed")
        finally:
            _redis_client = None
