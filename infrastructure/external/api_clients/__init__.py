"""
外部REST API客户端基础设施
"""
from .base import APIError, APIResponse, BaseAPIClient, TransportError

__all__ = [
    "APIError",
    "APIResponse",
    "BaseAPIClient",
    "TransportError",
]
