"""
Payment DTOs (Pydantic v2) used at application boundaries.

Outbound Breeze payloads serialize with camelCase aliases via ``to_wire()``.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Literal
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.types import condecimal


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---- Provider side ----

class RemoteCustomer(BaseModel):
    id: str
    reference_id: Optional[str] = None
    email: Optional[str] = None


class CreateCustomer(_WireModel):
    reference_id: str = Field(serialization_alias="referenceId")
    email: str
    signup_at: int = Field(serialization_alias="signupAt")  # epoch milliseconds


class CustomerRef(BaseModel):
    id: str


class CreatePaymentPage(_WireModel):
    products: list[dict[str, Any]]
    billing_email: str = Field(serialization_alias="billingEmail")
    client_reference_id: str = Field(serialization_alias="clientReferenceId")
    success_return_url: str = Field(serialization_alias="successReturnUrl")
    fail_return_url: str = Field(serialization_alias="failReturnUrl")
    customer: CustomerRef


class PaymentPage(BaseModel):
    id: Optional[str] = None
    url: Optional[str] = None
    status: Optional[str] = None


class RefundResult(BaseModel):
    refund_id: Optional[str] = None
    status: Optional[str] = None


class WebhookEvent(BaseModel):
    """Structurally valid, signature-verified webhook body."""
    type: Optional[str] = None
    signature: str
    data: dict[str, Any]

    @property
    def client_reference_id(self) -> Optional[str]:
        value = self.data.get("clientReferenceId")
        # bool is an int subclass but never an order id
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value if isinstance(value, str) else None

    @property
    def page_id(self) -> Optional[str]:
        value = self.data.get("pageId")
        return str(value) if value else None


# ---- Application side ----

class RefundRequest(BaseModel):
    amount: condecimal(gt=0, max_digits=14, decimal_places=2)  # type: ignore[valid-type]
    reason: Optional[str] = Field(default=None, max_length=500)

    @field_validator("reason")
    @classmethod
    def _blank_reason_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class CheckoutResult(BaseModel):
    result: Literal["success"] = "success"
    redirect: str


class ReturnOutcome(BaseModel):
    redirect_url: str
    notice: Optional[str] = None
    clear_cart: bool = False


class WebhookAck(BaseModel):
    received: bool = True
    # False when the event was acknowledged without touching any order
    applied: bool = False
    detail: Optional[str] = None


class RefundOutcome(BaseModel):
    order_id: int
    refund_id: Optional[str] = None
    amount: Decimal
    amount_minor: int
    reason: Optional[str] = None


class Availability(BaseModel):
    currency: str
    available: bool
    test_mode: bool
