"""
Payment and fulfillment specific codes, plus processor status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    SIGNATURE_ERROR = 60002
    TIMEOUT = 60003
    PROVIDER_CONFIG_MISSING = 60005
    PAYMENT_NOT_SUCCEEDED = 60006
    PAYMENT_INTENT_MISSING = 60007
    SUBSCRIPTION_STEP_FAILED = 60008

    # Commerce platform / fulfillment errors (7xxxx)
    COMMERCE_ERROR = 70000
    COMMERCE_USER_ERROR = 70001
    COMMERCE_CONFIG_MISSING = 70002
    BLUEPRINT_NOT_FOUND = 70003
    PROFILE_NOT_FOUND = 70004


# PayMongo payment intent status -> internal status
PROVIDER_STATUS_TO_INTERNAL = {
    "paymongo": {
        "awaiting_payment_method": "pending",
        "awaiting_next_action": "pending",
        "processing": "pending",
        "succeeded": "succeeded",
    },
}
