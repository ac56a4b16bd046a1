"""Domain-level business exceptions shared by domain and infrastructure.

The core layer only maps these to HTTP responses; the domain never depends on core.
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """Base class for business errors.

    ``message`` is safe to show to the buyer or merchant; internal detail goes
    into ``details`` and the logs.
    """

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class OrderNotFoundException(BusinessException):
    def __init__(self, order_id: Optional[int] = None):
        details = {"order_id": order_id} if order_id is not None else None
        super().__init__(
            code=BusinessCode.ORDER_NOT_FOUND,
            message="Invalid order.",
            error_type="OrderNotFound",
            details=details,
        )


class UnsupportedCurrencyException(BusinessException):
    def __init__(self, currency: str):
        super().__init__(
            code=BusinessCode.UNSUPPORTED_CURRENCY,
            message=f"Breeze is not available for {currency} orders.",
            error_type="UnsupportedCurrency",
            details={"currency": currency},
            field="currency",
        )
