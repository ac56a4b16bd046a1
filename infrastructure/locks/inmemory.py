"""In-memory implementation of OrderLock.

Single-process only. Useful for local dev and tests.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from application.ports.order_lock import OrderLock


class InMemoryOrderLock(OrderLock):
    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._waiters: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, order_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(order_id, asyncio.Lock())
        self._waiters[order_id] = self._waiters.get(order_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[order_id] -= 1
            # Drop idle entries so the map does not grow with every order ever seen
            if self._waiters[order_id] == 0:
                del self._waiters[order_id]
                del self._locks[order_id]

    def active(self) -> int:
        return len(self._locks)
