"""
Payment provider port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from application.dtos.payments import (
    CreateCustomer,
    CreatePaymentPage,
    PaymentPage,
    RefundResult,
    RemoteCustomer,
    WebhookEvent,
)


@runtime_checkable
class PaymentProvider(Protocol):
    """Hosted-checkout provider protocol.

    Every remote call raises PaymentProviderError on transport failure,
    timeout, non-2xx status or an unreadable body. No call is retried.
    """

    provider: str

    async def find_customer_by_email(self, email: str) -> Optional[RemoteCustomer]: ...

    async def create_customer(self, req: CreateCustomer) -> RemoteCustomer: ...

    async def create_payment_page(self, req: CreatePaymentPage) -> PaymentPage: ...

    async def refund(self, page_id: str, amount_minor: int, reason: Optional[str] = None) -> RefundResult: ...

    def parse_webhook(self, body: bytes) -> WebhookEvent: ...

    async def aclose(self) -> None: ...
