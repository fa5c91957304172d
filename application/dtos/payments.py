"""
Payment gateway DTOs (Pydantic v2) exchanged across the gateway port.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.types import condecimal

# Common ISO-4217 currencies (extend as needed)
ISO_4217 = {
    "USD", "EUR", "GBP", "CNY", "JPY", "KRW", "HKD", "AUD", "CAD", "SGD",
}


def _validate_currency(v: str) -> str:
    u = (v or "").upper()
    if len(u) != 3 or not u.isalpha():
        raise ValueError("currency must be ISO-4217 alpha-3")
    if u not in ISO_4217:
        raise ValueError("unsupported currency")
    return u


class CreateCharge(BaseModel):
    amount: condecimal(gt=0)  # type: ignore[valid-type]
    currency: str = Field(default="USD")
    idempotency_key: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def _currency(cls, v: str) -> str:
        return _validate_currency(v)


class ChargeHandle(BaseModel):
    """Result of creating a charge: what the client needs to finish paying."""

    charge_id: str
    status: str
    client_secret: Optional[str] = None
    provider: str


class ChargeDetails(BaseModel):
    """Charge as seen by the provider, used to verify a confirmation."""

    charge_id: str
    status: str
    amount_minor: int
    currency: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    provider: str


class RefundRequest(BaseModel):
    charge_id: str
    amount: condecimal(gt=0)  # type: ignore[valid-type]
    currency: str = Field(default="USD")
    reason: Optional[str] = None
    idempotency_key: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def _currency(cls, v: str) -> str:
        return _validate_currency(v)


class RefundResult(BaseModel):
    refund_id: str
    status: str
    provider: str
    amount: Optional[Decimal] = None
