"""
Payment specific codes and gateway status mapping.
"""
from __future__ import annotations

from enum import IntEnum
from typing import Optional


class PaymentCode(IntEnum):
    # Checkout / records (2xxxx, payment block)
    PAYMENT_UNAVAILABLE = 20100
    PAYMENT_NOT_FOUND = 20101
    PAYMENT_ALREADY_EXISTS = 20102
    COURSE_NOT_FOUND = 20103
    CHECKOUT_DISMISSED = 20104

    # Payouts
    PAYOUT_NOT_FOUND = 20200
    PAYOUT_INVALID_TRANSITION = 20201

    # Gateway/Network errors (6xxxx)
    GATEWAY_ERROR = 60000
    GATEWAY_RECOVERABLE = 60001
    SIGNATURE_ERROR = 60002
    SCRIPT_LOAD_ERROR = 60003


# Gateway transaction_status -> internal payment status.
# Anything not listed (including an unset status) leaves the payment untouched.
GATEWAY_STATUS_TO_INTERNAL: dict[str, str] = {
    "settlement": "paid",
    "capture": "paid",
    "pending": "pending",
    "deny": "failed",
    "cancel": "failed",
    "failure": "failed",
    "expire": "expired",
}


def map_gateway_status(transaction_status: Optional[str]) -> Optional[str]:
    """Return the internal status for a gateway status, or None when unknown."""
    if not transaction_status:
        return None
    return GATEWAY_STATUS_TO_INTERNAL.get(transaction_status.strip().lower())
