"""
Payment gateway settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings so gateway credentials can be rotated
independently, e.g. ``PAYMENT__STRIPE__SECRET_KEY=sk_live_...``.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PaymentTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 3.0
    total: float = 5.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


class StripeSettings(BaseModel):
    secret_key: Optional[str] = None


class PaymentSettings(BaseSettings):
    default_provider: str = Field(default="stripe")
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)
    stripe: StripeSettings = Field(default_factory=StripeSettings)

    model_config = SettingsConfigDict(
        env_prefix="PAYMENT__",
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe.secret_key)


payment_settings = PaymentSettings()
