"""
Stripe PaymentIntents adapter using the official stripe-python SDK.

A "charge handle" in this service is a PaymentIntent id; its client secret is
handed to the browser, which completes the payment with Stripe.js.
"""
from __future__ import annotations

from decimal import Decimal

import stripe

from application.dtos.payments import (
    ChargeDetails,
    ChargeHandle,
    CreateCharge,
    RefundRequest,
    RefundResult,
)
from core.settings import payment_settings
from domain.common.money import to_minor_units
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import (
    PaymentProviderError,
    PaymentRecoverableError,
)


class StripeClient(BasePaymentClient):
    provider = "stripe"
    retryable = (stripe.APIConnectionError, stripe.RateLimitError)

    def __init__(self, secret_key: str | None = None):
        super().__init__(
            timeouts=payment_settings.timeouts.model_dump(),
            retry={"max": payment_settings.retry.max, "base": payment_settings.retry.base_backoff},
        )
        api_key = secret_key or payment_settings.stripe.secret_key
        if not api_key:
            raise RuntimeError("PAYMENT__STRIPE__SECRET_KEY not configured")
        stripe.api_key = api_key
        stripe.max_network_retries = 0  # retries are driven by tenacity
        stripe.default_http_client = stripe.RequestsClient(timeout=self._timeouts_cfg["total"])

    def _wrap(self, exc: Exception) -> Exception:
        code = getattr(exc, "code", None)
        if isinstance(exc, self.retryable):
            return PaymentRecoverableError(str(exc), provider=self.provider, provider_code=code)
        return PaymentProviderError(str(exc), provider=self.provider, provider_code=code)

    async def create_charge(self, req: CreateCharge) -> ChargeHandle:  # type: ignore[override]
        amount_minor = to_minor_units(req.amount, req.currency)
        try:
            pi = await self._retry(
                lambda: stripe.PaymentIntent.create(
                    amount=amount_minor,
                    currency=req.currency.lower(),
                    metadata=req.metadata,
                    automatic_payment_methods={"enabled": True},
                    idempotency_key=req.idempotency_key,
                )
            )
        except stripe.StripeError as exc:
            raise self._wrap(exc) from exc
        self._log("stripe_payment_intent_created", intent_id=pi["id"], amount_minor=amount_minor)
        return ChargeHandle(
            charge_id=str(pi["id"]),
            status=self._map_status(pi["status"]),
            client_secret=pi.get("client_secret"),
            provider=self.provider,
        )

    async def retrieve_charge(self, charge_id: str) -> ChargeDetails:  # type: ignore[override]
        try:
            pi = await self._retry(lambda: stripe.PaymentIntent.retrieve(charge_id))
        except stripe.StripeError as exc:
            raise self._wrap(exc) from exc
        metadata = pi.get("metadata") or {}
        return ChargeDetails(
            charge_id=str(pi["id"]),
            status=self._map_status(pi["status"]),
            amount_minor=int(pi["amount"]),
            currency=str(pi["currency"]).upper(),
            metadata=dict(metadata),
            provider=self.provider,
        )

    async def refund(self, req: RefundRequest) -> RefundResult:  # type: ignore[override]
        try:
            refund = await self._retry(
                lambda: stripe.Refund.create(
                    payment_intent=req.charge_id,
                    amount=to_minor_units(req.amount, req.currency),
                    metadata={"reason": req.reason or ""},
                    idempotency_key=req.idempotency_key,
                )
            )
        except stripe.StripeError as exc:
            raise self._wrap(exc) from exc
        self._log("stripe_refund_created", refund_id=refund["id"], intent_id=req.charge_id)
        return RefundResult(
            refund_id=str(refund["id"]),
            status=str(refund.get("status", "")),
            provider=self.provider,
            amount=Decimal(str(req.amount)),
        )
