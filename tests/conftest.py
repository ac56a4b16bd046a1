"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings, and provide
in-memory stand-ins for the order store and the Breeze API.
"""
import os

# Mandatory merchant token for settings validation
os.environ.setdefault("MERCHANT_API_TOKEN", "test-merchant-token")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("STORE__PUBLIC_BASE_URL", "https://shop.example")

import copy
import json
from decimal import Decimal
from typing import Optional

import pytest

from application.dtos.payments import (
    CreateCustomer,
    CreatePaymentPage,
    PaymentPage,
    RefundResult,
    RemoteCustomer,
    WebhookEvent,
)
from application.services.breeze_gateway import BreezeGateway
from core.config import StoreSettings
from core.settings import GatewayConfig
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderItem, OrderNote, PaymentStatus
from domain.order.repository import CustomerLinkRepository, OrderRepository
from domain.payment.exceptions import PaymentProviderError
from infrastructure.external.payments.breeze_client import BreezeClient
from infrastructure.external.payments.signature import compute_signature
from infrastructure.locks import InMemoryOrderLock


WEBHOOK_SECRET = "whook_sk_test"


class InMemoryOrderRepository(OrderRepository):
    """Dict-backed orders; reads return copies so callers see snapshots like a DB."""

    def __init__(self) -> None:
        self.rows: dict[int, Order] = {}

    def add(self, order: Order) -> Order:
        self.rows[order.id] = order
        return order

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        row = self.rows.get(order_id)
        return copy.deepcopy(row) if row else None

    async def set_return_token(self, order_id: int, token: str) -> None:
        self.rows[order_id].breeze_return_token = token

    async def consume_return_token(self, order_id: int, expected: str) -> bool:
        row = self.rows.get(order_id)
        if row is None or not expected or row.breeze_return_token != expected:
            return False
        row.breeze_return_token = None
        return True

    async def save_checkout_session(self, order_id, customer_id, payment_page_id) -> bool:
        row = self.rows.get(order_id)
        if row is None or row.payment_status == PaymentStatus.PAID:
            return False
        row.breeze_customer_id = customer_id
        row.breeze_payment_page_id = payment_page_id
        row.payment_status = PaymentStatus.PENDING_REMOTE
        return True

    async def mark_paid_if_unpaid(self, order_id, transaction_id) -> bool:
        row = self.rows.get(order_id)
        if row is None or row.payment_status == PaymentStatus.PAID:
            return False
        row.payment_status = PaymentStatus.PAID
        row.transaction_id = transaction_id or ""
        return True

    async def transition_unless_paid(self, order_id, status) -> bool:
        row = self.rows.get(order_id)
        if row is None or row.payment_status == PaymentStatus.PAID:
            return False
        row.payment_status = status
        return True

    async def add_note(self, order_id: int, note: str) -> None:
        self.rows[order_id].notes.append(OrderNote(note=note))

    async def purge_breeze_metadata(self) -> int:
        changed = 0
        for row in self.rows.values():
            if row.breeze_customer_id or row.breeze_payment_page_id or row.breeze_return_token:
                row.breeze_customer_id = row.breeze_payment_page_id = row.breeze_return_token = None
                changed += 1
        return changed


class InMemoryCustomerLinks(CustomerLinkRepository):
    def __init__(self) -> None:
        self.links: dict[int, str] = {}

    async def get_remote_customer_id(self, user_id: int) -> Optional[str]:
        return self.links.get(user_id)

    async def set_remote_customer_id(self, user_id: int, customer_id: str) -> None:
        self.links[user_id] = customer_id

    async def purge(self) -> int:
        count = len(self.links)
        self.links.clear()
        return count


class InMemoryUnitOfWork(AbstractUnitOfWork):
    def __init__(self, orders: InMemoryOrderRepository, customers: InMemoryCustomerLinks) -> None:
        super().__init__()
        self.orders = orders
        self.customers = customers
        self.commits = 0

    async def commit(self) -> None:
        self.commits += 1
        self._committed = True

    async def rollback(self) -> None:
        self._committed = False


class StubBreezeProvider:
    """Records calls and answers from canned values; webhook parsing is the real one."""

    provider = "breeze"

    def __init__(self, config: GatewayConfig) -> None:
        self._parser = BreezeClient(config)
        self.calls: list[tuple[str, object]] = []
        self.existing_customer: Optional[RemoteCustomer] = None
        self.lookup_error: Optional[Exception] = None
        self.create_customer_error: Optional[Exception] = None
        self.page = PaymentPage(id="page_abc123", url="https://pay.breeze.cash/page_abc123")
        self.page_error: Optional[Exception] = None
        self.refund_result = RefundResult(refund_id="rf_1", status="pending")
        self.refund_error: Optional[Exception] = None
        # Lets tests observe repository state at the moment of the call
        self.on_create_page = None

    async def find_customer_by_email(self, email: str) -> Optional[RemoteCustomer]:
        self.calls.append(("find_customer_by_email", email))
        if self.lookup_error:
            raise self.lookup_error
        return self.existing_customer

    async def create_customer(self, req: CreateCustomer) -> RemoteCustomer:
        self.calls.append(("create_customer", req))
        if self.create_customer_error:
            raise self.create_customer_error
        return RemoteCustomer(id="cus_new", reference_id=req.reference_id, email=req.email)

    async def create_payment_page(self, req: CreatePaymentPage) -> PaymentPage:
        self.calls.append(("create_payment_page", req))
        if self.on_create_page:
            self.on_create_page(req)
        if self.page_error:
            raise self.page_error
        return self.page

    async def refund(self, page_id: str, amount_minor: int, reason: Optional[str] = None) -> RefundResult:
        self.calls.append(("refund", (page_id, amount_minor, reason)))
        if self.refund_error:
            raise self.refund_error
        return self.refund_result

    def parse_webhook(self, body: bytes) -> WebhookEvent:
        return self._parser.parse_webhook(body)

    async def aclose(self) -> None:
        return None

    def called(self, name: str) -> list:
        return [arg for n, arg in self.calls if n == name]


@pytest.fixture
def provider_error():
    def _error(status_code: int = 500) -> PaymentProviderError:
        return PaymentProviderError("boom", provider="breeze", status_code=status_code)

    return _error


@pytest.fixture
def gateway_config() -> GatewayConfig:
    return GatewayConfig(
        api_base_url="https://api.breeze.test",
        api_key="sk_test_123",
        test_mode=True,
        webhook_secret=WEBHOOK_SECRET,
        payment_methods=(),
        supported_currencies=frozenset({"USD", "EUR"}),
    )


@pytest.fixture
def store() -> StoreSettings:
    return StoreSettings(public_base_url="https://shop.example")


@pytest.fixture
def orders() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def customers() -> InMemoryCustomerLinks:
    return InMemoryCustomerLinks()


@pytest.fixture
def provider(gateway_config) -> StubBreezeProvider:
    return StubBreezeProvider(gateway_config)


@pytest.fixture
def order_lock() -> InMemoryOrderLock:
    return InMemoryOrderLock()


@pytest.fixture
def make_gateway(gateway_config, provider, orders, customers, order_lock, store):
    def _make(config: Optional[GatewayConfig] = None, **kwargs) -> BreezeGateway:
        return BreezeGateway(
            config=config or gateway_config,
            provider=provider,
            uow_factory=lambda: InMemoryUnitOfWork(orders, customers),
            lock=order_lock,
            store=store,
            **kwargs,
        )

    return _make


@pytest.fixture
def gateway(make_gateway) -> BreezeGateway:
    return make_gateway(token_factory=lambda: "tok_fixed")


@pytest.fixture
def make_order(orders):
    def _make(order_id: int = 42, **overrides) -> Order:
        fields = dict(
            id=order_id,
            currency="USD",
            billing_email="buyer@example.com",
            user_id=7,
            items=[
                OrderItem(
                    name="Widget",
                    quantity=2,
                    line_total=Decimal("60.00"),
                    catalog_price=Decimal("30.00"),
                    short_description="A widget",
                    product_id=11,
                ),
            ],
            shipping_total=Decimal("10.00"),
            shipping_method="Flat rate",
        )
        fields.update(overrides)
        return orders.add(Order(**fields))

    return _make


@pytest.fixture
def sign():
    """Build a webhook body signed with the test secret."""

    def _sign(event_type: Optional[str], data: dict, secret: str = WEBHOOK_SECRET, signature: Optional[str] = None) -> bytes:
        payload = {"data": data, "signature": signature if signature is not None else compute_signature(data, secret)}
        if event_type is not None:
            payload["type"] = event_type
        return json.dumps(payload).encode("utf-8")

    return _sign
