"""
Inbound port the HTTP layer calls; BreezeGateway is the implementation.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional, Protocol, runtime_checkable

from application.dtos.payments import (
    CheckoutResult,
    RefundOutcome,
    ReturnOutcome,
    WebhookAck,
)


@runtime_checkable
class CheckoutGateway(Protocol):
    async def create_checkout_session(self, order_id: int) -> CheckoutResult: ...

    async def handle_return(self, order_id: Optional[str], status: Optional[str], token: Optional[str]) -> ReturnOutcome: ...

    async def handle_webhook(self, body: bytes) -> WebhookAck: ...

    async def refund(self, order_id: int, amount: Decimal, reason: Optional[str] = None) -> RefundOutcome: ...

    def is_available(self, currency: str) -> bool: ...
