"""Redis connection management."""
from .redis_client import init_redis_client, shutdown_redis_client

__all__ = ["init_redis_client", "shutdown_redis_client"]
