"""
Breeze gateway settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings; the gateway only ever sees the frozen
``GatewayConfig`` resolved from these values.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_BASE_URL = "https://api.breeze.cash"

# Methods Breeze understands in the preferred_payment_methods hint
KNOWN_PAYMENT_METHODS = ("apple_pay", "google_pay", "card", "crypto")


class BreezeTimeouts(BaseModel):
    connect: float = 10.0
    read: float = 45.0
    write: float = 45.0
    total: float = 45.0


class BreezeSettings(BaseSettings):
    api_base_url: Optional[str] = None
    test_mode: bool = True
    test_api_key: Optional[str] = None
    live_api_key: Optional[str] = None
    webhook_secret: Optional[str] = None
    debug: bool = False
    payment_methods: list[str] = Field(default_factory=list)
    supported_currencies: list[str] = Field(default_factory=lambda: ["USD", "EUR", "GBP"])
    timeouts: BreezeTimeouts = Field(default_factory=BreezeTimeouts)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="BREEZE__",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    @field_validator("payment_methods", "supported_currencies", mode="before")
    @classmethod
    def _split_csv(cls, v):
        """Accept a JSON array or a comma separated string."""
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                return v
            return [item.strip() for item in s.split(",") if item.strip()]
        return v

    @field_validator("payment_methods")
    @classmethod
    def _check_methods(cls, v: list[str]) -> list[str]:
        unknown = [m for m in v if m not in KNOWN_PAYMENT_METHODS]
        if unknown:
            raise ValueError(f"Unknown Breeze payment methods: {', '.join(unknown)}")
        return v

    @field_validator("supported_currencies")
    @classmethod
    def _upper_currencies(cls, v: list[str]) -> list[str]:
        return [c.upper() for c in v]


# Hook a deployment can register to point the gateway at another Breeze environment
BaseUrlResolver = Callable[[], Optional[str]]


@dataclass(frozen=True)
class GatewayConfig:
    """Gateway options resolved once at startup."""

    api_base_url: str
    api_key: Optional[str]
    test_mode: bool
    webhook_secret: Optional[str]
    payment_methods: tuple[str, ...] = ()
    supported_currencies: frozenset[str] = frozenset()
    timeout: float = 45.0
    connect_timeout: float = 10.0
    debug: bool = False

    @classmethod
    def from_settings(
        cls,
        s: BreezeSettings,
        base_url_resolver: Optional[BaseUrlResolver] = None,
    ) -> "GatewayConfig":
        # explicit override > resolver hook > production default
        base_url = s.api_base_url
        if not base_url and base_url_resolver is not None:
            base_url = base_url_resolver()
        base_url = (base_url or DEFAULT_API_BASE_URL).rstrip("/")

        return cls(
            api_base_url=base_url,
            api_key=s.test_api_key if s.test_mode else s.live_api_key,
            test_mode=s.test_mode,
            webhook_secret=s.webhook_secret or None,
            payment_methods=tuple(s.payment_methods),
            supported_currencies=frozenset(s.supported_currencies),
            timeout=s.timeouts.total,
            connect_timeout=s.timeouts.connect,
            debug=s.debug,
        )

    def supports_currency(self, currency: str) -> bool:
        return (currency or "").upper() in self.supported_currencies


breeze_settings = BreezeSettings()
