"""
Per-order mutual exclusion port.

Webhook read-decide-write sequences for the same order run one at a time;
different orders never block each other.
"""
from __future__ import annotations

from typing import AsyncContextManager, Protocol, runtime_checkable


@runtime_checkable
class OrderLock(Protocol):
    def hold(self, order_id: int) -> AsyncContextManager[None]: ...
