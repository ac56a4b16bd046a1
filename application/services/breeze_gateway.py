"""
Breeze gateway - checkout, return, webhook and refund use-cases.

The webhook is the only channel allowed to mark an order paid. The browser
return is provisional: it moves the order to awaiting-confirmation (or failed)
and burns the one-time token. Status writes go through conditional repository
updates, and webhook handling for one order runs under a per-order lock.
"""
from __future__ import annotations

import hmac
import re
import secrets
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit, quote

from application.dtos.payments import (
    CheckoutResult,
    CreateCustomer,
    CreatePaymentPage,
    CustomerRef,
    RefundOutcome,
    ReturnOutcome,
    WebhookAck,
)
from application.ports.checkout_gateway import CheckoutGateway
from application.ports.order_lock import OrderLock
from application.ports.payment_gateway import PaymentProvider
from core.config import StoreSettings
from core.logging_config import get_logger
from core.settings import GatewayConfig
from domain.common.exceptions import (
    BusinessException,
    DomainValidationException,
    OrderNotFoundException,
    UnsupportedCurrencyException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, PaymentStatus
from domain.order.events import OrderPaid, OrderPaymentEvent, OrderPaymentFailed, OrderRefunded
from domain.payment.line_items import build_line_items
from domain.payment.money import to_decimal, to_minor_units
from domain.payment.exceptions import PaymentProviderError
from shared.codes.payment_codes import FAILURE_EVENT_TYPES, SUCCESS_EVENT_TYPES, PaymentCode


RETURN_PATH = "/api/v1/payments/breeze/return"
CLIENT_REFERENCE_PREFIX = "order-"
NOT_AVAILABLE = "N/A"

NOTE_AWAITING_PAYMENT = "Awaiting Breeze payment."
NOTE_AWAITING_WEBHOOK = "Buyer returned from Breeze. Awaiting webhook confirmation."
NOTE_RETURN_FAILED = "Payment failed or cancelled by customer."
NOTE_WEBHOOK_FAILED = "Payment failed via Breeze webhook notification."
NOTICE_NOT_COMPLETED = "Payment was not completed."

_DIGITS = re.compile(r"[0-9]+")


class CustomerResolutionError(BusinessException):
    def __init__(self, order_id: int):
        super().__init__(
            code=PaymentCode.CUSTOMER_RESOLUTION_FAILED,
            message="Failed to create customer in Breeze.",
            error_type="CustomerResolutionError",
            details={"order_id": order_id},
        )


class SessionCreationError(BusinessException):
    def __init__(self, order_id: int):
        super().__init__(
            code=PaymentCode.SESSION_CREATION_FAILED,
            message="Failed to create payment page in Breeze.",
            error_type="SessionCreationError",
            details={"order_id": order_id},
        )


class OrderAlreadyPaidError(BusinessException):
    def __init__(self, order_id: int):
        super().__init__(
            code=PaymentCode.ORDER_ALREADY_PAID,
            message="This order has already been paid.",
            error_type="OrderAlreadyPaidError",
            details={"order_id": order_id},
        )


class MissingSessionError(BusinessException):
    def __init__(self, order_id: int):
        super().__init__(
            code=PaymentCode.MISSING_SESSION,
            message="Breeze payment page ID not found for this order.",
            error_type="MissingSessionError",
            details={"order_id": order_id},
        )


class RefundFailedError(BusinessException):
    def __init__(self, order_id: int):
        super().__init__(
            code=PaymentCode.REFUND_FAILED,
            message=(
                "Refund could not be processed automatically. "
                "Please process it manually through your Breeze dashboard."
            ),
            error_type="RefundFailedError",
            details={"order_id": order_id},
        )


def parse_order_id(value: Optional[str]) -> Optional[int]:
    """Positive integer from an untrusted string, else None."""
    if not isinstance(value, str) or not _DIGITS.fullmatch(value):
        return None
    order_id = int(value)
    return order_id if order_id > 0 else None


def parse_client_reference(value: Optional[str]) -> Optional[int]:
    """``order-42`` -> 42. Anything but digits after the prefix is rejected."""
    if not isinstance(value, str):
        return None
    return parse_order_id(value.removeprefix(CLIENT_REFERENCE_PREFIX))


def append_payment_methods(url: str, methods: tuple[str, ...]) -> str:
    if not methods:
        return url
    parts = urlsplit(url)
    param = "preferred_payment_methods=" + quote(",".join(methods), safe=",")
    query = f"{parts.query}&{param}" if parts.query else param
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_token() -> str:
    return secrets.token_urlsafe(32)


class BreezeGateway(CheckoutGateway):
    """
    Breeze hosted-checkout gateway

    Collaborators are injected; one instance serves one request so ``events``
    only holds what that request produced.
    """

    provider_name = "breeze"

    def __init__(
        self,
        config: GatewayConfig,
        provider: PaymentProvider,
        uow_factory: Callable[[], AbstractUnitOfWork],
        lock: OrderLock,
        store: StoreSettings,
        *,
        clock: Callable[[], datetime] = _utcnow,
        token_factory: Callable[[], str] = _new_token,
        logger=None,
    ) -> None:
        self.config = config
        self.provider = provider
        self.uow_factory = uow_factory
        self.lock = lock
        self.store = store
        self.clock = clock
        self.token_factory = token_factory
        self.logger = logger or get_logger(__name__)
        self.events: List[OrderPaymentEvent] = []

    def clear_events(self) -> None:
        self.events.clear()

    def is_available(self, currency: str) -> bool:
        return bool(self.config.api_key) and self.config.supports_currency(currency)

    # ---- Checkout ----

    async def create_checkout_session(self, order_id: int) -> CheckoutResult:
        async with self.uow_factory() as uow:
            order = await uow.orders.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        if order.is_paid:
            self.logger.warning("checkout_order_already_paid", order_id=order_id)
            raise OrderAlreadyPaidError(order_id)
        if not self.config.supports_currency(order.currency):
            self.logger.warning("checkout_currency_unsupported", order_id=order_id, currency=order.currency)
            raise UnsupportedCurrencyException(order.currency)

        self.logger.info(
            "checkout_started",
            order_id=order_id,
            guest=order.is_guest,
            test_mode=self.config.test_mode,
        )

        customer_id = await self._resolve_customer(order)
        products = build_line_items(order)

        # The token must be stored before the buyer can possibly come back
        token = self.token_factory()
        async with self.uow_factory() as uow:
            await uow.orders.set_return_token(order.id, token)

        request = CreatePaymentPage(
            products=[p.to_wire() for p in products],
            billing_email=order.billing_email,
            client_reference_id=order.client_reference_id,
            success_return_url=self._return_url(order.id, "success", token),
            fail_return_url=self._return_url(order.id, "failed", token),
            customer=CustomerRef(id=customer_id),
        )
        try:
            page = await self.provider.create_payment_page(request)
        except PaymentProviderError as exc:
            self.logger.error(
                "checkout_payment_page_failed",
                order_id=order.id,
                status_code=exc.status_code,
            )
            raise SessionCreationError(order.id) from exc
        if not page.url:
            self.logger.error("checkout_payment_page_without_url", order_id=order.id, page_id=page.id)
            raise SessionCreationError(order.id)

        async with self.uow_factory() as uow:
            saved = await uow.orders.save_checkout_session(order.id, customer_id, page.id)
            if saved:
                await uow.orders.add_note(order.id, NOTE_AWAITING_PAYMENT)
        if not saved:
            # Paid by a webhook while the page was being created
            self.logger.warning("checkout_order_paid_meanwhile", order_id=order.id, page_id=page.id)
            raise OrderAlreadyPaidError(order.id)

        redirect = append_payment_methods(page.url, self.config.payment_methods)
        self.logger.info(
            "checkout_session_created",
            order_id=order.id,
            page_id=page.id,
            line_items=len(products),
            payment_methods=",".join(self.config.payment_methods) or None,
        )
        return CheckoutResult(redirect=redirect)

    async def _resolve_customer(self, order: Order) -> str:
        if not order.is_guest:
            async with self.uow_factory() as uow:
                cached = await uow.customers.get_remote_customer_id(order.user_id)
            if cached:
                return cached

        found = None
        if order.billing_email:
            try:
                found = await self.provider.find_customer_by_email(order.billing_email)
            except PaymentProviderError as exc:
                # Lookup is an optimisation; creation is still attempted
                self.logger.warning(
                    "customer_lookup_failed",
                    order_id=order.id,
                    status_code=exc.status_code,
                )
        if found is not None:
            await self._cache_customer(order, found.id)
            self.logger.info("customer_found", order_id=order.id, customer_id=found.id)
            return found.id

        request = CreateCustomer(
            reference_id=order.customer_reference_id,
            email=order.billing_email,
            signup_at=int(self.clock().timestamp() * 1000),
        )
        try:
            created = await self.provider.create_customer(request)
        except PaymentProviderError as exc:
            self.logger.error(
                "customer_create_failed",
                order_id=order.id,
                status_code=exc.status_code,
            )
            raise CustomerResolutionError(order.id) from exc
        await self._cache_customer(order, created.id)
        self.logger.info("customer_created", order_id=order.id, customer_id=created.id)
        return created.id

    async def _cache_customer(self, order: Order, customer_id: str) -> None:
        if order.is_guest:
            return
        async with self.uow_factory() as uow:
            await uow.customers.set_remote_customer_id(order.user_id, customer_id)

    def _return_url(self, order_id: int, status: str, token: str) -> str:
        query = urlencode({"orderId": order_id, "status": status, "token": token})
        return f"{self.store.url(RETURN_PATH)}?{query}"

    # ---- Browser return ----

    async def handle_return(
        self,
        order_id: Optional[str],
        status: Optional[str],
        token: Optional[str],
    ) -> ReturnOutcome:
        cart = ReturnOutcome(redirect_url=self.store.url(self.store.cart_path))

        oid = parse_order_id(order_id)
        if oid is None:
            self.logger.info("return_invalid_order_id")
            return cart

        async with self.uow_factory() as uow:
            order = await uow.orders.get_by_id(oid)
            if order is None:
                self.logger.info("return_order_not_found", order_id=oid)
                return cart

            stored = order.breeze_return_token
            presented = token or ""
            if not stored or not hmac.compare_digest(stored.encode("utf-8"), presented.encode("utf-8")):
                self.logger.warning("return_token_mismatch", order_id=oid)
                return cart

            if not await uow.orders.consume_return_token(oid, stored):
                # A concurrent request burned the token first
                self.logger.warning("return_token_already_consumed", order_id=oid)
                return cart

            if status == "success":
                if not order.is_paid and await uow.orders.transition_unless_paid(
                    oid, PaymentStatus.AWAITING_WEBHOOK_CONFIRMATION
                ):
                    await uow.orders.add_note(oid, NOTE_AWAITING_WEBHOOK)
                self.logger.info("return_success", order_id=oid, paid=order.is_paid)
                return ReturnOutcome(
                    redirect_url=self.store.url(self.store.order_received_path.format(order_id=oid)),
                    clear_cart=True,
                )

            if await uow.orders.transition_unless_paid(oid, PaymentStatus.FAILED):
                await uow.orders.add_note(oid, NOTE_RETURN_FAILED)
            self.logger.warning("return_failed", order_id=oid, status=status, paid=order.is_paid)
            return ReturnOutcome(
                redirect_url=self.store.url(self.store.checkout_path),
                notice=NOTICE_NOT_COMPLETED,
                clear_cart=True,
            )

    # ---- Webhook ----

    async def handle_webhook(self, body: bytes) -> WebhookAck:
        event = self.provider.parse_webhook(body)

        if event.type in SUCCESS_EVENT_TYPES:
            succeeded = True
        elif event.type in FAILURE_EVENT_TYPES:
            succeeded = False
        else:
            self.logger.warning("webhook_unknown_event", type=event.type)
            return WebhookAck(detail="ignored")

        oid = parse_client_reference(event.client_reference_id)
        if oid is None:
            self.logger.warning(
                "webhook_invalid_reference",
                type=event.type,
                client_reference_id=event.client_reference_id,
            )
            return WebhookAck(detail="ignored")

        page_id = event.page_id
        emitted: Optional[OrderPaymentEvent] = None

        async with self.lock.hold(oid):
            async with self.uow_factory() as uow:
                order = await uow.orders.get_by_id(oid)
                if order is None:
                    self.logger.warning("webhook_order_not_found", order_id=oid, type=event.type)
                    return WebhookAck(detail="ignored")

                stored_page = order.breeze_payment_page_id
                if stored_page and page_id and stored_page != page_id:
                    self.logger.warning(
                        "webhook_session_mismatch",
                        order_id=oid,
                        stored_page_id=stored_page,
                        event_page_id=page_id,
                    )
                    return WebhookAck(detail="ignored")

                if succeeded:
                    if await uow.orders.mark_paid_if_unpaid(oid, page_id):
                        await uow.orders.add_note(
                            oid,
                            "Payment confirmed via Breeze webhook. "
                            f"Transaction ID: {page_id or NOT_AVAILABLE}",
                        )
                        emitted = OrderPaid(order_id=oid, provider_ref=page_id)
                    else:
                        self.logger.info("webhook_already_paid", order_id=oid)
                elif order.is_paid:
                    self.logger.warning("webhook_stale_failure_ignored", order_id=oid, type=event.type)
                elif order.payment_status == PaymentStatus.FAILED:
                    self.logger.info("webhook_already_failed", order_id=oid)
                elif await uow.orders.transition_unless_paid(oid, PaymentStatus.FAILED):
                    await uow.orders.add_note(oid, NOTE_WEBHOOK_FAILED)
                    emitted = OrderPaymentFailed(order_id=oid, provider_ref=page_id, reason=event.type)
                else:
                    # Paid by a delivery that committed after our read
                    self.logger.warning("webhook_stale_failure_ignored", order_id=oid, type=event.type)

        if emitted is None:
            return WebhookAck(detail="no_change")

        self.events.append(emitted)
        self.logger.info(
            "webhook_applied",
            order_id=oid,
            type=event.type,
            emitted=type(emitted).__name__,
            page_id=page_id,
        )
        return WebhookAck(applied=True, detail="processed")

    # ---- Refund ----

    async def refund(self, order_id: int, amount: Decimal, reason: Optional[str] = None) -> RefundOutcome:
        amount = to_decimal(amount)
        if amount <= 0:
            raise DomainValidationException("Refund amount must be greater than zero.", field="amount")

        async with self.uow_factory() as uow:
            order = await uow.orders.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        page_id = order.breeze_payment_page_id
        if not page_id:
            self.logger.error("refund_missing_session", order_id=order_id)
            raise MissingSessionError(order_id)

        amount_minor = to_minor_units(amount)
        try:
            result = await self.provider.refund(page_id, amount_minor, reason)
        except PaymentProviderError as exc:
            self.logger.error(
                "refund_failed",
                order_id=order_id,
                page_id=page_id,
                amount_minor=amount_minor,
                status_code=exc.status_code,
            )
            raise RefundFailedError(order_id) from exc

        async with self.uow_factory() as uow:
            await uow.orders.add_note(
                order_id,
                f"Refunded {amount} via Breeze. "
                f"Refund ID: {result.refund_id or NOT_AVAILABLE}. "
                f"Reason: {reason or NOT_AVAILABLE}",
            )

        self.events.append(
            OrderRefunded(
                order_id=order_id,
                provider_ref=page_id,
                refund_id=result.refund_id or "",
                amount_minor=amount_minor,
            )
        )
        self.logger.info(
            "refund_processed",
            order_id=order_id,
            page_id=page_id,
            amount_minor=amount_minor,
            refund_id=result.refund_id,
        )
        return RefundOutcome(
            order_id=order_id,
            refund_id=result.refund_id,
            amount=amount,
            amount_minor=amount_minor,
            reason=reason,
        )
