"""
Exceptions for payment providers mapped to unified BusinessException variants.
"""
from __future__ import annotations

from typing import Any, Optional
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


def first_error_detail(errors: list[dict[str, Any]] | None, fallback: str) -> str:
    """Human-readable detail of the processor's first error, with its source pointer."""
    if not errors:
        return fallback
    first = errors[0] or {}
    detail = first.get("detail") or first.get("message") or fallback
    if not isinstance(detail, str):
        detail = str(detail)
    source = first.get("source") or {}
    pointer = source.get("pointer") or source.get("attribute") if isinstance(source, dict) else None
    return f"{detail} ({pointer})" if pointer else detail


class PaymentProviderError(BusinessException):
    """The processor rejected the request (4xx) or answered with an unusable body."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        provider_code: str | None = None,
        errors: Optional[list[dict[str, Any]]] = None,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        self.provider = provider
        self.provider_code = provider_code
        self.errors = errors or []
        self.status_code = status_code
        full_details = {
            "provider": provider,
            "provider_code": provider_code,
            "status_code": status_code,
            "errors": self.errors,
        }
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.PROVIDER_ERROR,
            message=message,
            error_type="PaymentProviderError",
            details=full_details,
        )


class PaymentRecoverableError(PaymentProviderError):
    """Timeouts, network failures, 429 and 5xx after retries were exhausted."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.code = PaymentCode.PROVIDER_RECOVERABLE
        self.error_type = "PaymentRecoverableError"


class PaymentConfigurationError(BusinessException):
    def __init__(self, message: str, *, provider: str):
        super().__init__(
            code=PaymentCode.PROVIDER_CONFIG_MISSING,
            message=message,
            error_type="PaymentConfigurationError",
            details={"provider": provider},
        )


class PaymentSignatureError(BusinessException):
    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.SIGNATURE_ERROR,
            message=message,
            error_type="PaymentSignatureError",
            details=full_details,
        )
