"""
Commerce platform errors mapped to unified BusinessException variants.
"""
from __future__ import annotations

from typing import Any, Optional
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class CommerceError(BusinessException):
    """Transport failure, non-2xx status or top-level GraphQL ``errors``."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, errors: Optional[list] = None):
        self.status_code = status_code
        self.errors = errors or []
        super().__init__(
            code=PaymentCode.COMMERCE_ERROR,
            message=message,
            error_type="CommerceError",
            details={"status_code": status_code, "errors": self.errors},
        )


class CommerceUserError(BusinessException):
    """A mutation answered with ``userErrors``; the request itself was rejected."""

    def __init__(self, operation: str, user_errors: list[dict[str, Any]]):
        self.operation = operation
        self.user_errors = user_errors
        first = user_errors[0].get("message") if user_errors and isinstance(user_errors[0], dict) else None
        super().__init__(
            code=PaymentCode.COMMERCE_USER_ERROR,
            message=f"Shopify {operation} error: {first or user_errors}",
            error_type="CommerceUserError",
            details={"operation": operation, "user_errors": user_errors},
        )


class CommerceConfigurationError(BusinessException):
    def __init__(self, message: str):
        super().__init__(
            code=PaymentCode.COMMERCE_CONFIG_MISSING,
            message=message,
            error_type="CommerceConfigurationError",
        )
