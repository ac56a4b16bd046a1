from dataclasses import replace
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlsplit

import pytest

from application.dtos.payments import PaymentPage, RemoteCustomer
from application.services.breeze_gateway import (
    CustomerResolutionError,
    OrderAlreadyPaidError,
    SessionCreationError,
    append_payment_methods,
)
from domain.common.exceptions import OrderNotFoundException, UnsupportedCurrencyException
from domain.order.entity import PaymentStatus
from domain.payment.line_items import LineItemBuildError


@pytest.mark.asyncio
async def test_checkout_creates_customer_and_page(gateway, provider, orders, customers, make_order):
    make_order(42, user_id=7)

    result = await gateway.create_checkout_session(42)

    assert result.result == "success"
    assert result.redirect == "https://pay.breeze.cash/page_abc123"

    (created,) = provider.called("create_customer")
    assert created.reference_id == "user-7"
    assert created.email == "buyer@example.com"
    assert customers.links[7] == "cus_new"

    (page_req,) = provider.called("create_payment_page")
    wire = page_req.to_wire()
    assert wire["clientReferenceId"] == "order-42"
    assert wire["customer"] == {"id": "cus_new"}
    assert wire["billingEmail"] == "buyer@example.com"
    assert [p["amount"] for p in wire["products"]] == [3000, 1000]

    success = urlsplit(wire["successReturnUrl"])
    assert f"{success.scheme}://{success.netloc}{success.path}" == "https://shop.example/api/v1/payments/breeze/return"
    assert parse_qs(success.query) == {"orderId": ["42"], "status": ["success"], "token": ["tok_fixed"]}
    assert parse_qs(urlsplit(wire["failReturnUrl"]).query)["status"] == ["failed"]

    row = orders.rows[42]
    assert row.breeze_payment_page_id == "page_abc123"
    assert row.breeze_customer_id == "cus_new"
    assert row.breeze_return_token == "tok_fixed"
    assert row.payment_status == PaymentStatus.PENDING_REMOTE
    assert [n.note for n in row.notes] == ["Awaiting Breeze payment."]


@pytest.mark.asyncio
async def test_guest_reference_and_signup_time(make_gateway, provider, customers, make_order):
    make_order(42, user_id=None)
    fixed = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    gateway = make_gateway(clock=lambda: fixed)

    await gateway.create_checkout_session(42)

    (created,) = provider.called("create_customer")
    assert created.reference_id == "guest-42"
    assert created.signup_at == int(fixed.timestamp() * 1000)
    assert customers.links == {}


@pytest.mark.asyncio
async def test_cached_customer_skips_remote_calls(gateway, provider, customers, make_order):
    make_order(42, user_id=7)
    customers.links[7] = "cus_cached"

    await gateway.create_checkout_session(42)

    assert provider.called("find_customer_by_email") == []
    assert provider.called("create_customer") == []
    assert provider.called("create_payment_page")[0].customer.id == "cus_cached"


@pytest.mark.asyncio
async def test_existing_remote_customer_is_reused(gateway, provider, customers, make_order):
    make_order(42, user_id=7)
    provider.existing_customer = RemoteCustomer(id="cus_found", email="buyer@example.com")

    await gateway.create_checkout_session(42)

    assert provider.called("create_customer") == []
    assert customers.links[7] == "cus_found"


@pytest.mark.asyncio
async def test_lookup_failure_falls_back_to_create(gateway, provider, provider_error, make_order):
    make_order(42)
    provider.lookup_error = provider_error(503)

    await gateway.create_checkout_session(42)

    assert len(provider.called("create_customer")) == 1


@pytest.mark.asyncio
async def test_customer_creation_failure(gateway, provider, provider_error, make_order):
    make_order(42)
    provider.create_customer_error = provider_error(400)

    with pytest.raises(CustomerResolutionError) as exc:
        await gateway.create_checkout_session(42)

    assert exc.value.message == "Failed to create customer in Breeze."
    assert provider.called("create_payment_page") == []


@pytest.mark.asyncio
async def test_token_is_stored_before_page_request(gateway, provider, orders, make_order):
    make_order(42)
    seen = []
    provider.on_create_page = lambda req: seen.append(orders.rows[42].breeze_return_token)

    await gateway.create_checkout_session(42)

    assert seen == ["tok_fixed"]


@pytest.mark.asyncio
async def test_page_failure_keeps_order_unpaid(gateway, provider, provider_error, orders, make_order):
    make_order(42)
    provider.page_error = provider_error(500)

    with pytest.raises(SessionCreationError) as exc:
        await gateway.create_checkout_session(42)

    assert exc.value.message == "Failed to create payment page in Breeze."
    row = orders.rows[42]
    assert row.payment_status == PaymentStatus.UNPAID
    assert row.breeze_payment_page_id is None
    assert row.notes == []


@pytest.mark.asyncio
async def test_page_without_url_is_a_failure(gateway, provider, make_order):
    make_order(42)
    provider.page = PaymentPage(id="page_x", url=None)

    with pytest.raises(SessionCreationError):
        await gateway.create_checkout_session(42)


@pytest.mark.asyncio
async def test_preferred_payment_methods_are_appended(make_gateway, gateway_config, make_order):
    make_order(42)
    gateway = make_gateway(config=replace(gateway_config, payment_methods=("apple_pay", "card")))

    result = await gateway.create_checkout_session(42)

    assert result.redirect == "https://pay.breeze.cash/page_abc123?preferred_payment_methods=apple_pay,card"


def test_append_payment_methods_keeps_existing_query():
    assert (
        append_payment_methods("https://pay/x?lang=en#top", ("crypto",))
        == "https://pay/x?lang=en&preferred_payment_methods=crypto#top"
    )
    assert append_payment_methods("https://pay/x", ()) == "https://pay/x"


@pytest.mark.asyncio
async def test_unknown_order(gateway):
    with pytest.raises(OrderNotFoundException):
        await gateway.create_checkout_session(999)


@pytest.mark.asyncio
async def test_unsupported_currency(gateway, provider, make_order):
    make_order(42, currency="JPY")

    with pytest.raises(UnsupportedCurrencyException):
        await gateway.create_checkout_session(42)

    assert provider.calls == []


@pytest.mark.asyncio
async def test_order_without_products_fails_before_page(gateway, provider, make_order):
    make_order(42, items=[], shipping_total=0)

    with pytest.raises(LineItemBuildError):
        await gateway.create_checkout_session(42)

    assert provider.called("create_payment_page") == []


def test_availability(make_gateway, gateway_config):
    assert make_gateway().is_available("usd") is True
    assert make_gateway().is_available("JPY") is False
    assert make_gateway(config=replace(gateway_config, api_key=None)).is_available("USD") is False


@pytest.mark.asyncio
async def test_paid_order_is_refused_before_any_remote_call(gateway, provider, orders, make_order):
    make_order(42, payment_status=PaymentStatus.PAID, breeze_payment_page_id="page_orig")

    with pytest.raises(OrderAlreadyPaidError):
        await gateway.create_checkout_session(42)

    assert provider.calls == []
    row = orders.rows[42]
    assert row.payment_status == PaymentStatus.PAID
    assert row.breeze_payment_page_id == "page_orig"
    assert row.breeze_return_token is None
    assert row.notes == []


@pytest.mark.asyncio
async def test_order_paid_while_page_is_created(gateway, provider, orders, make_order):
    make_order(42, breeze_payment_page_id="page_orig")

    def paid_by_webhook(_req):
        orders.rows[42].payment_status = PaymentStatus.PAID

    provider.on_create_page = paid_by_webhook

    with pytest.raises(OrderAlreadyPaidError):
        await gateway.create_checkout_session(42)

    row = orders.rows[42]
    assert row.payment_status == PaymentStatus.PAID
    assert row.breeze_payment_page_id == "page_orig"
    assert row.notes == []
