import base64
import json
from dataclasses import replace

import httpx
import pytest

from application.dtos.payments import CreateCustomer, CreatePaymentPage, CustomerRef
from domain.payment.exceptions import GatewayConfigurationError, PaymentProviderError
from infrastructure.external.payments.breeze_client import BreezeClient
from shared.codes.payment_codes import PaymentCode


class Recorder:
    """MockTransport handler answering from a route table."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.routes[(request.method, request.url.path)]
        if isinstance(answer, Exception):
            raise answer
        return answer


def _client(config, routes):
    recorder = Recorder(routes)
    return BreezeClient(config, transport=httpx.MockTransport(recorder)), recorder


@pytest.mark.asyncio
async def test_basic_auth_and_customer_lookup(gateway_config):
    client, rec = _client(
        gateway_config,
        {("GET", "/v1/customers"): httpx.Response(200, json={"data": {"id": "cus_1", "email": "a@b.c"}})},
    )

    found = await client.find_customer_by_email("a@b.c")
    await client.aclose()

    assert found.id == "cus_1"
    req = rec.requests[0]
    assert req.url.params["email"] == "a@b.c"
    expected = base64.b64encode(b"sk_test_123:").decode()
    assert req.headers["Authorization"] == f"Basic {expected}"


@pytest.mark.asyncio
async def test_customer_lookup_returns_none_without_id(gateway_config):
    client, _ = _client(gateway_config, {("GET", "/v1/customers"): httpx.Response(200, json={"data": []})})

    assert await client.find_customer_by_email("a@b.c") is None


@pytest.mark.asyncio
async def test_create_customer_sends_camel_case(gateway_config):
    client, rec = _client(
        gateway_config,
        {("POST", "/v1/customers"): httpx.Response(201, json={"data": {"id": "cus_9"}})},
    )

    created = await client.create_customer(
        CreateCustomer(reference_id="user-7", email="a@b.c", signup_at=1700000000000)
    )

    assert created.id == "cus_9"
    assert created.reference_id == "user-7"
    assert json.loads(rec.requests[0].content) == {
        "referenceId": "user-7",
        "email": "a@b.c",
        "signupAt": 1700000000000,
    }


@pytest.mark.asyncio
async def test_create_payment_page(gateway_config):
    client, rec = _client(
        gateway_config,
        {
            ("POST", "/v1/payment_pages"): httpx.Response(
                200, json={"data": {"id": "page_abc123", "url": "https://pay/x", "status": "OPEN"}}
            )
        },
    )

    page = await client.create_payment_page(
        CreatePaymentPage(
            products=[{"name": "A", "amount": 100}],
            billing_email="a@b.c",
            client_reference_id="order-42",
            success_return_url="https://s",
            fail_return_url="https://f",
            customer=CustomerRef(id="cus_1"),
        )
    )

    assert page.id == "page_abc123"
    assert page.url == "https://pay/x"
    sent = json.loads(rec.requests[0].content)
    assert sent["clientReferenceId"] == "order-42"
    assert sent["customer"] == {"id": "cus_1"}
    assert sent["successReturnUrl"] == "https://s"


@pytest.mark.asyncio
async def test_refund_posts_minor_amount(gateway_config):
    client, rec = _client(
        gateway_config,
        {
            ("POST", "/v1/payment_pages/page_abc123/refund"): httpx.Response(
                200, json={"data": {"id": "rf_7", "status": "pending"}}
            )
        },
    )

    result = await client.refund("page_abc123", 4999, "Damaged")

    assert result.refund_id == "rf_7"
    assert json.loads(rec.requests[0].content) == {"amount": 4999, "reason": "Damaged"}


@pytest.mark.asyncio
async def test_refund_omits_empty_reason(gateway_config):
    client, rec = _client(
        gateway_config,
        {("POST", "/v1/payment_pages/page_1/refund"): httpx.Response(200, json={"data": {}})},
    )

    result = await client.refund("page_1", 100)

    assert result.refund_id is None
    assert json.loads(rec.requests[0].content) == {"amount": 100}


@pytest.mark.asyncio
async def test_non_2xx_raises_provider_error(gateway_config):
    client, _ = _client(
        gateway_config,
        {("POST", "/v1/customers"): httpx.Response(422, json={"error": "bad email"})},
    )

    with pytest.raises(PaymentProviderError) as exc:
        await client.create_customer(CreateCustomer(reference_id="guest-1", email="x", signup_at=1))

    assert exc.value.status_code == 422
    assert "bad email" not in exc.value.message


@pytest.mark.asyncio
async def test_invalid_json_on_success_raises(gateway_config):
    client, _ = _client(gateway_config, {("GET", "/v1/customers"): httpx.Response(200, content=b"<html>")})

    with pytest.raises(PaymentProviderError):
        await client.find_customer_by_email("a@b.c")


@pytest.mark.asyncio
async def test_timeout_is_reported_without_retry(gateway_config):
    client, rec = _client(
        gateway_config,
        {("GET", "/v1/customers"): httpx.ReadTimeout("slow")},
    )

    with pytest.raises(PaymentProviderError) as exc:
        await client.find_customer_by_email("a@b.c")

    assert exc.value.code == PaymentCode.TIMEOUT
    assert len(rec.requests) == 1


@pytest.mark.asyncio
async def test_connection_error(gateway_config):
    client, _ = _client(
        gateway_config,
        {("GET", "/v1/customers"): httpx.ConnectError("refused")},
    )

    with pytest.raises(PaymentProviderError) as exc:
        await client.find_customer_by_email("a@b.c")

    assert exc.value.code == PaymentCode.PROVIDER_ERROR


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_any_call(gateway_config):
    client, rec = _client(replace(gateway_config, api_key=None), {})

    with pytest.raises(GatewayConfigurationError):
        await client.find_customer_by_email("a@b.c")

    assert rec.requests == []
