"""
HTTP infrastructure layer with bounded retries.

Provides:
- FetchRequest: Everything needed to issue one GET against a source
- RetryConfig: Exponential backoff and Retry-After handling
- HTTPClient: Async HTTP client that exhausts retryable failures locally
  and raises the ingestion error taxonomy once they are exhausted

Retry policy:
- 429: honour ``Retry-After`` (seconds or HTTP-date), else 2^attempt backoff
- 5xx and network/timeout errors: exponential backoff with jitter
- 400: one immediate retry with ``simplified_params`` when provided
- other 4xx: fail at once
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from regwatch.config.settings import Settings, get_settings
from regwatch.ingestion.errors import NetworkError, error_for_status
from regwatch.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

_RETRYABLE_EXCEPTIONS = (
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.ReadError,
    httpx.RemoteProtocolError,
)


@dataclass
class FetchRequest:
    """
    A single GET against a source endpoint.

    Attributes:
        url: Absolute URL
        params: Query parameters
        headers: Extra request headers
        timeout: Per-request timeout override in seconds
        api_key: Optional API key
        api_key_param: Query parameter carrying the key (when no header is set)
        api_key_header: Header carrying the key
        simplified_params: Replacement params used for the single 400 retry
    """

    url: str
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None
    api_key: str | None = None
    api_key_param: str = "api_key"
    api_key_header: str | None = None
    simplified_params: dict[str, Any] | None = None

    def build(self, params: dict[str, Any]) -> tuple[dict[str, Any], dict[str, str]]:
        """Return (params, headers) with the API key applied."""
        request_params = dict(params)
        request_headers = dict(self.headers)
        if self.api_key:
            if self.api_key_header:
                request_headers[self.api_key_header] = self.api_key
            else:
                request_params[self.api_key_param] = self.api_key
        return request_params, request_headers


@dataclass
class RetryConfig:
    """
    Exponential backoff configuration for HTTP retries.

    ``max_retries`` is the total number of attempts per request, so a
    persistently failing endpoint is called at most ``max_retries`` times.

    Formula: min(max_backoff, base_delay * 2^attempt) * (1 + random(0, jitter_factor))
    """

    max_retries: int = 3
    max_backoff_seconds: float = 60.0
    base_delay: float = 1.0
    jitter_factor: float = 0.1

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RetryConfig":
        """Build from process settings."""
        settings = settings or get_settings()
        return cls(
            max_retries=settings.max_http_retries,
            max_backoff_seconds=settings.max_backoff_seconds,
        )

    def calculate_backoff(self, attempt: int) -> float:
        """
        Calculate backoff duration for a given retry attempt.

        Args:
            attempt: The retry attempt number (0-indexed)

        Returns:
            Backoff duration in seconds with jitter applied
        """
        delay = self.base_delay * (2**attempt)
        delay = min(delay, self.max_backoff_seconds)
        jitter = delay * self.jitter_factor * random.random()
        return delay + jitter

    def rate_limit_delay(self, attempt: int, retry_after: str | None) -> float:
        """
        Delay before retrying a 429.

        Uses the server's ``Retry-After`` header when parseable, falling
        back to exponential backoff. Always capped at ``max_backoff_seconds``.
        """
        parsed = parse_retry_after(retry_after)
        if parsed is not None:
            return min(parsed, self.max_backoff_seconds)
        return self.calculate_backoff(attempt)

    def is_retryable_status(self, status_code: int) -> bool:
        """
        Check if an HTTP status code should trigger a retry.

        Retryable status codes: 429, 500, 502, 503, 504.
        """
        return status_code in {429, 500, 502, 503, 504}


def parse_retry_after(value: str | None) -> float | None:
    """
    Parse a ``Retry-After`` header.

    Accepts delta-seconds (``"120"``) or an HTTP-date. Returns None when
    the header is absent or malformed.
    """
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


class HTTPClient:
    """
    Async HTTP client with bounded retry logic.

    Example:
        async with HTTPClient(RetryConfig(max_retries=3)) as client:
            response = await client.fetch(FetchRequest(url=feed_url))
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float = 30.0,
        user_agent: str | None = None,
    ):
        """
        Initialize HTTP client.

        Args:
            retry_config: Configuration for retry behavior. Uses defaults if None.
            timeout: Default request timeout in seconds.
            user_agent: User-Agent header sent with every request.
        """
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self.user_agent = user_agent or "regwatch/0.1.0"
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        """Enter async context manager, create client."""
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager, close client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch(self, request: FetchRequest) -> httpx.Response:
        """
        Execute a request, retrying retryable failures.

        Returns:
            httpx.Response with a 2xx/3xx status

        Raises:
            NetworkError: Transport failures after retries are exhausted
            RateLimitError: 429 after retries are exhausted
            ServerError: 5xx after retries are exhausted
            BadRequestError: 400 (after the simplified retry, if any)
            ClientError: Any other 4xx
        """
        if not self._client:
            raise RuntimeError("HTTPClient must be used as async context manager")

        max_attempts = max(1, self.retry_config.max_retries)
        params = dict(request.params)
        simplified = False
        attempt = 0
        calls = 0

        while True:
            request_params, request_headers = request.build(params)
            calls += 1
            try:
                response = await self._client.get(
                    request.url,
                    params=request_params or None,
                    headers=request_headers or None,
                    timeout=request.timeout or self.timeout,
                )
            except _RETRYABLE_EXCEPTIONS as e:
                attempt += 1
                if attempt < max_attempts:
                    backoff = self.retry_config.calculate_backoff(attempt - 1)
                    logger.warning(
                        f"Retryable error {type(e).__name__} for {request.url}, "
                        f"attempt {attempt}/{max_attempts}, backing off {backoff:.2f}s"
                    )
                    get_metrics().record_retry("network")
                    await asyncio.sleep(backoff)
                    continue
                raise NetworkError(
                    f"Request failed after {calls} attempts: {type(e).__name__}: {e}",
                    endpoint=request.url,
                    attempts=calls,
                ) from e

            status = response.status_code
            if status < 400:
                return response

            if status == 400 and request.simplified_params is not None and not simplified:
                simplified = True
                params = dict(request.simplified_params)
                logger.warning(
                    f"Bad request from {request.url}, retrying once with simplified query"
                )
                get_metrics().record_retry("bad_request")
                continue

            attempt += 1
            if self.retry_config.is_retryable_status(status) and attempt < max_attempts:
                if status == 429:
                    backoff = self.retry_config.rate_limit_delay(
                        attempt - 1, response.headers.get("Retry-After")
                    )
                    reason = "rate_limited"
                else:
                    backoff = self.retry_config.calculate_backoff(attempt - 1)
                    reason = "server_error"
                logger.warning(
                    f"Retryable status {status} from {request.url}, "
                    f"attempt {attempt}/{max_attempts}, backing off {backoff:.2f}s"
                )
                get_metrics().record_retry(reason)
                await asyncio.sleep(backoff)
                continue

            raise error_for_status(
                status,
                request.url,
                attempts=calls,
                response_body=response.text,
            )
