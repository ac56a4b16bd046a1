"""
Breeze line-item builder.

Unit prices come from post-discount line totals, so coupons are already
reflected and no separate discount distribution is needed. Tax is never sent:
Breeze is the merchant of record and computes it itself.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from domain.common.exceptions import BusinessException
from domain.order.entity import Order, OrderItem
from domain.payment.money import to_minor_units, unit_amount_minor
from shared.codes.payment_codes import PaymentCode


SHIPPING_LINE_NAME = "Shipping"


class LineItemBuildError(BusinessException):
    def __init__(self, order_id: int):
        super().__init__(
            code=PaymentCode.LINE_ITEMS_EMPTY,
            message="Failed to create products array.",
            error_type="LineItemBuildError",
            details={"order_id": order_id},
        )


@dataclass(frozen=True)
class LineItem:
    name: str
    description: str
    currency: str
    amount: int  # minor units per unit
    quantity: int
    image_url: Optional[str] = None
    external_id: Optional[str] = None

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "currency": self.currency,
            "amount": self.amount,
            "quantity": self.quantity,
        }
        # Breeze rejects empty/null images, so the key is omitted instead
        if self.image_url:
            payload["images"] = [self.image_url]
        if self.external_id:
            payload["id"] = self.external_id
        return payload


def _item_unit_amount(item: OrderItem) -> int:
    if item.quantity > 0:
        return unit_amount_minor(item.line_total, item.quantity)
    return to_minor_units(item.catalog_price)


def build_line_items(order: Order) -> list[LineItem]:
    """Convert an order into Breeze products. Raises LineItemBuildError when nothing survives."""
    items: list[LineItem] = []

    for item in order.items:
        if not item.product_available:
            continue
        items.append(
            LineItem(
                name=item.name,
                description=item.short_description or item.name,
                currency=order.currency,
                amount=_item_unit_amount(item),
                quantity=item.quantity,
                image_url=item.image_url or None,
                external_id=str(item.product_id) if item.product_id else None,
            )
        )

    if order.shipping_total > 0:
        items.append(
            LineItem(
                name=SHIPPING_LINE_NAME,
                description=order.shipping_method or SHIPPING_LINE_NAME,
                currency=order.currency,
                amount=to_minor_units(order.shipping_total),
                quantity=1,
            )
        )

    if not items:
        raise LineItemBuildError(order.id)
    return items
