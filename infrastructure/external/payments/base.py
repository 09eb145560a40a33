"""
Base payment client implementing shared concerns: http, retry, logging, mapping.

Concrete providers subclass and implement provider-specific calls.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from core.logging_config import get_logger
from infrastructure.external.api_clients.base import (
    APIError,
    APIResponse,
    BaseAPIClient,
    TransportError,
)
from infrastructure.external.payments.exceptions import (
    PaymentProviderError,
    PaymentRecoverableError,
)
from shared.codes.payment_codes import PROVIDER_STATUS_TO_INTERNAL


logger = get_logger(__name__)


class BasePaymentClient(BaseAPIClient):
    provider: str = "base"

    def __init__(
        self,
        base_url: str,
        *,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeouts_cfg = timeouts or {"connect": 1.0, "read": 3.0, "write": 3.0, "total": 5.0}
        self._retry_cfg = retry or {"max": 2, "base": 0.2}
        super().__init__(
            base_url,
            timeout=self.timeouts,
            max_retries=int(self._retry_cfg["max"]),
            retry_delay=float(self._retry_cfg["base"]),
            transport=transport,
        )

    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self._timeouts_cfg["connect"],
            read=self._timeouts_cfg["read"],
            write=self._timeouts_cfg["write"],
            timeout=self._timeouts_cfg["total"],
        )

    async def aclose(self) -> None:
        """Close underlying HTTP client if created."""
        await self.close()

    def _handle_error_response(self, status_code: int, response: APIResponse):
        body = response.data if isinstance(response.data, dict) else {}
        errors = body.get("errors") if isinstance(body.get("errors"), list) else None
        if not errors:
            errors = [{"code": "http_error", "detail": body or f"HTTP {status_code}"}]
        first = errors[0] if isinstance(errors[0], dict) else {}
        error_cls = PaymentRecoverableError if status_code == 429 or status_code >= 500 else PaymentProviderError
        raise error_cls(
            f"{self.provider}_{status_code}",
            provider=self.provider,
            provider_code=first.get("code"),
            errors=errors,
            status_code=status_code,
        )

    async def _call(self, method: str, endpoint: str, *, idempotent: bool, **kwargs) -> dict[str, Any]:
        """Send a request and return the decoded JSON body.

        Only idempotent requests are retried on transient failures.
        """
        try:
            response = await self._request(method, endpoint, retry=idempotent, **kwargs)
        except TransportError as exc:
            raise PaymentRecoverableError(
                exc.message,
                provider=self.provider,
                provider_code="transport_error",
                errors=[{"code": "transport_error", "detail": exc.message}],
            ) from exc
        except APIError as exc:
            raise PaymentProviderError(
                exc.message, provider=self.provider, status_code=exc.status_code
            ) from exc
        data = response.data
        if not isinstance(data, dict):
            raise PaymentProviderError(
                "Invalid JSON from payment processor",
                provider=self.provider,
                status_code=response.status_code,
            )
        return data

    # Helpers
    def _map_status(self, provider_status: str) -> str:
        mapping = PROVIDER_STATUS_TO_INTERNAL.get(self.provider, {})
        return mapping.get(provider_status, provider_status)

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
