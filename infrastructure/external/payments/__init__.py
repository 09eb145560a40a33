"""
Factory for the payment processor client.
"""
from __future__ import annotations

from application.ports.payment_gateway import PaymentProcessor


def get_payment_processor() -> PaymentProcessor:
    from .paymongo_client import PayMongoClient
    return PayMongoClient()
