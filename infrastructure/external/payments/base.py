"""
Base payment client implementing shared concerns: retry, logging, status mapping.

Concrete providers should subclass and implement provider-specific logic.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from application.dtos.payments import (
    ChargeDetails,
    ChargeHandle,
    CreateCharge,
    RefundRequest,
    RefundResult,
)
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from shared.codes.payment_codes import PROVIDER_STATUS_TO_INTERNAL

logger = get_logger(__name__)

T = TypeVar("T")


class BasePaymentClient(PaymentGateway):
    provider: str = "base"
    # Provider exceptions that warrant another attempt
    retryable: tuple[type[BaseException], ...] = ()

    def __init__(
        self,
        *,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
    ) -> None:
        self._timeouts_cfg = timeouts or {"connect": 1.0, "read": 3.0, "total": 5.0}
        self._retry_cfg = retry or {"max": 2, "base": 0.2}

    async def _retry(self, fn: Callable[[], T]) -> T:
        """Run a blocking SDK call off the event loop, retrying transient failures."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(self._retry_cfg["max"]) + 1),
            wait=wait_exponential(multiplier=self._retry_cfg["base"], min=0.1, max=2.0),
            retry=retry_if_exception_type(self.retryable),
            reraise=True,
        ):
            with attempt:
                return await asyncio.to_thread(fn)
        raise RuntimeError("unreachable")  # pragma: no cover

    async def create_charge(self, req: CreateCharge) -> ChargeHandle:  # type: ignore[override]
        raise NotImplementedError

    async def retrieve_charge(self, charge_id: str) -> ChargeDetails:  # type: ignore[override]
        raise NotImplementedError

    async def refund(self, req: RefundRequest) -> RefundResult:  # type: ignore[override]
        raise NotImplementedError

    # Helpers
    def _map_status(self, provider_status: str) -> str:
        mapping = PROVIDER_STATUS_TO_INTERNAL.get(self.provider, {})
        return mapping.get(provider_status, provider_status)

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
