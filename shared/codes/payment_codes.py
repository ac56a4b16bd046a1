"""
Payment specific codes and webhook event aliases.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Checkout orchestration (4xxxx)
    CUSTOMER_RESOLUTION_FAILED = 40000
    LINE_ITEMS_EMPTY = 40001
    SESSION_CREATION_FAILED = 40002
    MISSING_SESSION = 40003
    REFUND_FAILED = 40004
    CONFIGURATION_ERROR = 40005
    ORDER_ALREADY_PAID = 40006

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    SIGNATURE_ERROR = 60002
    TIMEOUT = 60003
    WEBHOOK_PAYLOAD_INVALID = 60005


# Breeze has shipped both naming styles for the same events
SUCCESS_EVENT_TYPES = frozenset({"payment.succeeded", "PAYMENT_SUCCEEDED"})
FAILURE_EVENT_TYPES = frozenset({"payment.failed", "PAYMENT_EXPIRED"})
