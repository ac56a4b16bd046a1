"""
Payment provider and webhook errors mapped to unified BusinessException variants.
"""
from __future__ import annotations

from typing import Optional
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class PaymentProviderError(BusinessException):
    """Transport failure, timeout, non-2xx or unreadable provider response.

    ``message`` never carries the provider body; that only goes to the logs.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status_code: Optional[int] = None,
        timeout: bool = False,
        details: Optional[dict] = None,
    ):
        full_details = {"provider": provider, "status_code": status_code}
        if details:
            full_details.update(details)
        self.status_code = status_code
        super().__init__(
            code=PaymentCode.TIMEOUT if timeout else PaymentCode.PROVIDER_ERROR,
            message=message,
            error_type="PaymentProviderError",
            details=full_details,
        )


class PaymentSignatureError(BusinessException):
    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.SIGNATURE_ERROR,
            message=message,
            error_type="PaymentSignatureError",
            details=full_details,
        )


class WebhookPayloadError(BusinessException):
    def __init__(self, message: str = "Invalid webhook structure", *, provider: str):
        super().__init__(
            code=PaymentCode.WEBHOOK_PAYLOAD_INVALID,
            message=message,
            error_type="WebhookPayloadError",
            details={"provider": provider},
        )


class GatewayConfigurationError(BusinessException):
    def __init__(self, message: str, *, provider: str):
        super().__init__(
            code=PaymentCode.CONFIGURATION_ERROR,
            message=message,
            error_type="GatewayConfigurationError",
            details={"provider": provider},
        )
