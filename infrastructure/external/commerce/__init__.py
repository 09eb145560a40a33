"""
Factory for the commerce platform client.
"""
from __future__ import annotations

from application.ports.commerce import CommercePlatform


def get_commerce_platform() -> CommercePlatform:
    from .shopify_client import ShopifyClient
    return ShopifyClient()
