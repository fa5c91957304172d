"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.payments import (
    ChargeDetails,
    ChargeHandle,
    CreateCharge,
    RefundRequest,
    RefundResult,
)


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for third-party payment providers.

    Implementations should be async and side-effect free beyond IO.
    """

    provider: str

    async def create_charge(self, req: CreateCharge) -> ChargeHandle: ...

    async def retrieve_charge(self, charge_id: str) -> ChargeDetails: ...

    async def refund(self, req: RefundRequest) -> RefundResult: ...
