"""
Breeze REST adapter (customers, payment pages, refunds) and webhook parsing.

Breeze wraps every response payload in ``{"data": {...}}``. Authentication is
HTTP Basic with the API key as username and an empty password.
"""
from __future__ import annotations

import base64
import json
from typing import Any, Optional
from urllib.parse import quote

import httpx

from application.dtos.payments import (
    CreateCustomer,
    CreatePaymentPage,
    PaymentPage,
    RefundResult,
    RemoteCustomer,
    WebhookEvent,
)
from application.ports.payment_gateway import PaymentProvider
from core.settings import GatewayConfig
from core.logging_config import get_logger
from infrastructure.external.payments.base import BasePaymentClient
from domain.payment.exceptions import (
    GatewayConfigurationError,
    PaymentProviderError,
    PaymentSignatureError,
    WebhookPayloadError,
)
from infrastructure.external.payments.signature import verify_signature


logger = get_logger(__name__)


def basic_auth_header(api_key: str) -> str:
    token = base64.b64encode(f"{api_key}:".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def _unwrap(payload: Any) -> Optional[dict[str, Any]]:
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, dict):
            return data
        # customer search may answer with a list
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return data[0]
    return None


class BreezeClient(BasePaymentClient, PaymentProvider):
    provider = "breeze"

    def __init__(
        self,
        config: GatewayConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if config.api_key:
            headers["Authorization"] = basic_auth_header(config.api_key)
        super().__init__(
            base_url=config.api_base_url,
            timeouts={
                "connect": config.connect_timeout,
                "read": config.timeout,
                "write": config.timeout,
                "total": config.timeout,
            },
            headers=headers,
            debug=config.debug,
            transport=transport,
        )
        self._config = config

    def _require_api_key(self) -> None:
        if not self._config.api_key:
            mode = "test" if self._config.test_mode else "live"
            logger.error("breeze_api_key_missing", mode=mode)
            raise GatewayConfigurationError(
                f"Breeze {mode} API key is not configured", provider=self.provider
            )

    async def find_customer_by_email(self, email: str) -> Optional[RemoteCustomer]:
        self._require_api_key()
        payload = await self._request("GET", "/v1/customers", params={"email": email})
        data = _unwrap(payload)
        if not data or not data.get("id"):
            return None
        return RemoteCustomer(
            id=str(data["id"]),
            reference_id=data.get("referenceId"),
            email=data.get("email"),
        )

    async def create_customer(self, req: CreateCustomer) -> RemoteCustomer:
        self._require_api_key()
        payload = await self._request("POST", "/v1/customers", body=req.to_wire())
        data = _unwrap(payload)
        if not data or not data.get("id"):
            raise PaymentProviderError(
                "Payment provider returned no customer id", provider=self.provider
            )
        return RemoteCustomer(
            id=str(data["id"]),
            reference_id=data.get("referenceId", req.reference_id),
            email=data.get("email", req.email),
        )

    async def create_payment_page(self, req: CreatePaymentPage) -> PaymentPage:
        self._require_api_key()
        payload = await self._request("POST", "/v1/payment_pages", body=req.to_wire())
        data = _unwrap(payload)
        if not data:
            raise PaymentProviderError(
                "Payment provider returned no payment page", provider=self.provider
            )
        return PaymentPage(
            id=str(data["id"]) if data.get("id") else None,
            url=data.get("url") or None,
            status=data.get("status"),
        )

    async def refund(self, page_id: str, amount_minor: int, reason: Optional[str] = None) -> RefundResult:
        self._require_api_key()
        body: dict[str, Any] = {"amount": amount_minor}
        if reason:
            body["reason"] = reason
        payload = await self._request(
            "POST", f"/v1/payment_pages/{quote(page_id, safe='')}/refund", body=body
        )
        data = _unwrap(payload) or {}
        return RefundResult(
            refund_id=str(data["id"]) if data.get("id") else None,
            status=data.get("status"),
        )

    def parse_webhook(self, body: bytes) -> WebhookEvent:
        """Validate structure, then the signature. Raises before any order lookup."""
        try:
            raw = json.loads(body)
        except ValueError:
            raw = None
        if (
            not isinstance(raw, dict)
            or "signature" not in raw
            or "data" not in raw
            or not isinstance(raw.get("data"), dict)
        ):
            logger.warning("webhook_invalid_structure", body_bytes=len(body or b""))
            raise WebhookPayloadError(provider=self.provider)

        signature = raw.get("signature")
        if not isinstance(signature, str):
            signature = ""

        secret = self._config.webhook_secret
        if not secret:
            logger.error("webhook_rejected_no_secret")
            raise PaymentSignatureError(
                "Webhook secret is not configured", provider=self.provider
            )

        if not verify_signature(raw["data"], signature, secret):
            logger.warning("webhook_signature_invalid", type=raw.get("type"))
            raise PaymentSignatureError("Invalid webhook signature", provider=self.provider)

        event_type = raw.get("type")
        return WebhookEvent(
            type=event_type if isinstance(event_type, str) else None,
            signature=signature,
            data=raw["data"],
        )
