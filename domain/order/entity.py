"""
Order domain entity - the narrow slice of a host order that the Breeze gateway reads and mutates.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException


class PaymentStatus(str, Enum):
    """Payment status of an order as seen by the gateway"""
    UNPAID = "unpaid"
    PENDING_REMOTE = "pending_remote"  # buyer sent to the Breeze payment page
    AWAITING_WEBHOOK_CONFIRMATION = "awaiting_webhook_confirmation"  # browser came back, webhook not yet
    PAID = "paid"  # terminal, only the webhook sets it
    FAILED = "failed"


# Host order-system status for each payment status
HOST_STATUS = {
    PaymentStatus.UNPAID: "pending",
    PaymentStatus.PENDING_REMOTE: "pending",
    PaymentStatus.AWAITING_WEBHOOK_CONFIRMATION: "on-hold",
    PaymentStatus.PAID: "processing",
    PaymentStatus.FAILED: "failed",
}


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class OrderItem:
    """A purchased line; ``line_total`` already has coupons and discounts applied."""

    name: str
    quantity: int
    line_total: Decimal
    catalog_price: Decimal = field(default_factory=lambda: Decimal("0"))
    short_description: Optional[str] = None
    image_url: Optional[str] = None
    product_id: Optional[int] = None
    product_available: bool = True

    def __post_init__(self):
        if self.quantity < 0:
            raise DomainValidationException(
                f"Item quantity cannot be negative: {self.quantity}",
                field="quantity",
            )
        self.line_total = Decimal(str(self.line_total))
        self.catalog_price = Decimal(str(self.catalog_price))


@dataclass
class OrderNote:
    note: str
    created_at: Optional[datetime] = None

    def __post_init__(self):
        self.created_at = _ensure_utc(self.created_at)


@dataclass
class Order:
    """
    Order aggregate (host owned)

    Rules enforced by the gateway:
    1. The return token is single use
    2. Only the webhook channel moves an order to PAID
    3. A PAID order never goes back to FAILED
    4. A webhook must carry the payment page id stored on the order
    """

    id: int
    currency: str
    billing_email: str
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    user_id: Optional[int] = None
    items: list[OrderItem] = field(default_factory=list)
    shipping_total: Decimal = field(default_factory=lambda: Decimal("0"))
    shipping_method: Optional[str] = None
    discount_total: Decimal = field(default_factory=lambda: Decimal("0"))
    tax_total: Decimal = field(default_factory=lambda: Decimal("0"))

    # Breeze metadata, each independently nullable
    breeze_customer_id: Optional[str] = None
    breeze_payment_page_id: Optional[str] = None
    breeze_return_token: Optional[str] = None

    transaction_id: Optional[str] = None
    notes: list[OrderNote] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    def __post_init__(self):
        self.currency = (self.currency or "").upper()
        self.shipping_total = Decimal(str(self.shipping_total))
        self.discount_total = Decimal(str(self.discount_total))
        self.tax_total = Decimal(str(self.tax_total))
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.paid_at = _ensure_utc(self.paid_at)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def is_guest(self) -> bool:
        return not self.user_id

    @property
    def host_status(self) -> str:
        return HOST_STATUS[self.payment_status]

    @property
    def customer_reference_id(self) -> str:
        """Reference id Breeze stores for the buyer: ``user-{id}`` or ``guest-{order_id}``."""
        if self.user_id:
            return f"user-{self.user_id}"
        return f"guest-{self.id}"

    @property
    def client_reference_id(self) -> str:
        return f"order-{self.id}"

    def payable_total(self) -> Decimal:
        """Post-discount items plus shipping, tax excluded (Breeze is merchant of record)."""
        return sum((item.line_total for item in self.items), Decimal("0")) + self.shipping_total
