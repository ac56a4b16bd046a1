"""
Order payment events.

Dataclass events record payment lifecycle facts for the host (stock reduction,
emails). They are emitted once per real state change, never for no-op deliveries.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass
class OrderPaymentEvent:
    order_id: int
    provider: str = "breeze"
    provider_ref: Optional[str] = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class OrderPaid(OrderPaymentEvent):
    pass


@dataclass
class OrderPaymentFailed(OrderPaymentEvent):
    reason: Optional[str] = None


@dataclass
class OrderRefunded(OrderPaymentEvent):
    refund_id: str = ""
    amount_minor: int = 0
