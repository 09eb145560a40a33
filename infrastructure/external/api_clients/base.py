"""
REST API客户端基类

PayMongo 与 Shopify 客户端共用：
- 仅对调用方声明幂等的请求做瞬时错误重试
- 非 2xx 响应统一转换为 APIError，子类可覆盖转换为领域错误
- 超时与网络错误转换为 TransportError
"""
import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.logging_config import get_logger

logger = get_logger(__name__)


RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


@dataclass
class APIResponse:
    """API响应封装"""
    status_code: int
    headers: Dict[str, str]
    data: Any
    elapsed_ms: float
    request_id: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400


class APIError(Exception):
    """API错误基类"""
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[APIResponse] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)

    def __str__(self):
        if self.status_code:
            return f"{self.message} | Status: {self.status_code}"
        return self.message


class TransportError(APIError):
    """超时或网络错误（未收到响应）"""


class RetryableAPIError(APIError):
    """瞬时状态码，交给 tenacity 重试"""


def _log_before_sleep(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "api_request_retrying",
        attempt=retry_state.attempt_number,
        error=str(exc) if exc else None,
    )


def _retry_after_seconds(response: APIResponse) -> Optional[float]:
    header = response.headers.get("retry-after")
    try:
        return float(header) if header else None
    except (TypeError, ValueError):
        return None


class BaseAPIClient:
    """
    REST API客户端基类

    子类提供 base_url 与认证头，按需覆盖 _handle_error_response
    """

    user_agent = "mcduffy-payment-bridge/1.0"

    def __init__(
        self,
        base_url: str,
        timeout: Union[float, httpx.Timeout] = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: API基础URL
            timeout: 请求超时（秒或 httpx.Timeout）
            max_retries: 可重试请求的最大重试次数
            retry_delay: 重试退避基数（秒）
            headers: 默认请求头
            transport: 自定义传输层（测试中注入 httpx.MockTransport）
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._transport = transport

        self.default_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }
        if headers:
            self.default_headers.update(headers)

        self._client: Optional[httpx.AsyncClient] = None

    @property
    async def client(self) -> httpx.AsyncClient:
        """获取或创建HTTP客户端"""
        if self._client is None:
            timeout = self.timeout if isinstance(self.timeout, httpx.Timeout) else httpx.Timeout(self.timeout)
            self._client = httpx.AsyncClient(timeout=timeout, transport=self._transport)
        return self._client

    async def close(self):
        """关闭HTTP客户端"""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _auth_headers(self) -> Dict[str, str]:
        """子类按需提供认证头（每次请求时计算，便于延迟校验配置）"""
        return {}

    def _handle_error_response(self, status_code: int, response: APIResponse):
        """处理错误响应，子类可覆盖以转换为领域错误"""
        message = f"API request failed with status {status_code}"
        if isinstance(response.data, dict):
            message = (
                response.data.get("message")
                or response.data.get("error")
                or response.data.get("errors")
                or message
            )
            if not isinstance(message, str):
                message = json.dumps(message, default=str)
        raise APIError(message=message, status_code=status_code, response=response)

    async def _send_once(self, method: str, url: str, retry: bool, **kwargs) -> APIResponse:
        start = time.perf_counter()
        client = await self.client
        response = await client.request(method=method, url=url, **kwargs)

        data = None
        if "json" in response.headers.get("content-type", ""):
            try:
                data = response.json()
            except json.JSONDecodeError:
                data = None

        api_response = APIResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            data=data,
            elapsed_ms=(time.perf_counter() - start) * 1000,
            request_id=response.headers.get("x-request-id"),
        )
        logger.debug(
            "api_response",
            method=method,
            url=url,
            status_code=api_response.status_code,
            elapsed_ms=round(api_response.elapsed_ms, 2),
        )

        if api_response.is_error and retry and api_response.status_code in RETRY_STATUS_CODES:
            retry_after = _retry_after_seconds(api_response) if api_response.status_code == 429 else None
            if retry_after:
                await asyncio.sleep(retry_after)
            raise RetryableAPIError(
                message=f"Transient API error with status {api_response.status_code}",
                status_code=api_response.status_code,
                response=api_response,
            )

        if api_response.is_error:
            self._handle_error_response(api_response.status_code, api_response)
        return api_response

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        retry: bool = True,
    ) -> APIResponse:
        """
        发送HTTP请求

        Args:
            retry: 是否对瞬时错误重试；非幂等请求应传 False

        Raises:
            TransportError: 超时或网络错误
            APIError: 非 2xx 响应
        """
        url = self._build_url(endpoint)
        request_headers = {**self.default_headers, **self._auth_headers(), **(headers or {})}

        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt((self.max_retries if retry else 0) + 1),
            wait=wait_exponential(
                multiplier=self.retry_delay,
                min=self.retry_delay,
                max=self.retry_delay * 8
            ),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError, RetryableAPIError)),
            before_sleep=_log_before_sleep,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await self._send_once(
                        method, url, retry,
                        params=params, json=json_data, headers=request_headers,
                    )
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request timeout: {url}") from exc
        except httpx.NetworkError as exc:
            raise TransportError(f"Network error: {exc}") from exc
        except RetryableAPIError as exc:
            # 重试耗尽，按最后一次响应转换为具体错误
            self._handle_error_response(exc.status_code, exc.response)
            raise
        raise APIError(f"Request not sent: {method} {url}")  # pragma: no cover

    async def get(self, endpoint: str, **kwargs) -> APIResponse:
        return await self._request("GET", endpoint, **kwargs)

    async def post(self, endpoint: str, **kwargs) -> APIResponse:
        return await self._request("POST", endpoint, **kwargs)
