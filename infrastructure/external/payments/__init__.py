"""
Factory for payment gateway clients.
"""
from __future__ import annotations

from typing import Optional

from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from core.settings import payment_settings

logger = get_logger(__name__)


def get_payment_gateway(provider: Optional[str] = None) -> Optional[PaymentGateway]:
    """Build the configured gateway; None when no provider credentials are set."""
    name = (provider or payment_settings.default_provider).lower()
    if name == "stripe":
        if not payment_settings.stripe_configured:
            logger.warning("payment_gateway_not_configured", provider=name)
            return None
        from .stripe_client import StripeClient
        return StripeClient()
    raise ValueError(f"Unsupported payment provider: {name}")
