"""
Factory for payment provider clients.
"""
from __future__ import annotations

from typing import Optional

from application.ports.payment_gateway import PaymentProvider
from core.settings import GatewayConfig


def get_payment_provider(config: GatewayConfig, provider: Optional[str] = None) -> PaymentProvider:
    name = (provider or "breeze").lower()
    if name == "breeze":
        from .breeze_client import BreezeClient
        return BreezeClient(config)
    raise ValueError(f"Unsupported payment provider: {name}")
