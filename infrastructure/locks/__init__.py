"""Per-order lock adapters."""
from .inmemory import InMemoryOrderLock
from .redis import OrderLockTimeout, RedisOrderLock

__all__ = ["InMemoryOrderLock", "RedisOrderLock", "OrderLockTimeout"]
