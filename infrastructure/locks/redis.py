"""Redis implementation of OrderLock for multi-process deployments."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from redis import asyncio as aioredis
from redis.exceptions import LockError

from application.ports.order_lock import OrderLock
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode


logger = get_logger(__name__)


class OrderLockTimeout(BusinessException):
    """Another worker held the order for too long; the sender should redeliver."""

    def __init__(self, order_id: int):
        super().__init__(
            code=BusinessCode.SERVICE_UNAVAILABLE,
            message="Order is busy, retry later.",
            error_type="OrderLockTimeout",
            details={"order_id": order_id},
        )


class RedisOrderLock(OrderLock):
    def __init__(
        self,
        client: aioredis.Redis,
        *,
        namespace: str = "breeze-gateway",
        timeout: int = 30,
        blocking_timeout: int = 10,
    ) -> None:
        self._client = client
        self._namespace = namespace.strip(":")
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout

    def _key(self, order_id: int) -> str:
        return f"{self._namespace}:lock:order:{order_id}"

    @asynccontextmanager
    async def hold(self, order_id: int) -> AsyncIterator[None]:
        lock_key = self._key(order_id)
        lock = self._client.lock(
            lock_key,
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
            thread_local=False,
        )
        acquired = await lock.acquire()
        if not acquired:
            logger.warning("order_lock_timeout", order_id=order_id, lock_key=lock_key)
            raise OrderLockTimeout(order_id)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError as e:
                # Lock expired while held; the conditional updates still guard the row
                logger.error("order_lock_release_failed", lock_key=lock_key, error=str(e))
