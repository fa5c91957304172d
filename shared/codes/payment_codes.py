"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    VERIFICATION_FAILED = 60002
    TIMEOUT = 60003


# Sentinel the confirmation workflow checks against after mapping
CHARGE_SUCCEEDED = "succeeded"

# Provider→internal status mapping (extend per needs)
PROVIDER_STATUS_TO_INTERNAL = {
    "stripe": {
        "requires_payment_method": "pending",
        "requires_confirmation": "pending",
        "requires_action": "pending",
        "processing": "pending",
        "requires_capture": "pending",
        "succeeded": CHARGE_SUCCEEDED,
        "canceled": "canceled",
    },
}
