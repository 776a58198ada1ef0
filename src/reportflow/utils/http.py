"""HTTP helper for plugins that fetch remote data."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from reportflow.common.resilience import RetryConfig, RetryExhaustedError, retry_async

logger = logging.getLogger(__name__)

USER_AGENT = "Report-Framework/1.0"


class HttpError(Exception):
    """Raised when a request still fails after every retry."""

    def __init__(self, message: str, attempts: int, last_error: BaseException | None = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(message)


class ServerError(Exception):
    """A 5xx response; retried."""

    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"HTTP {response.status_code}: {response.reason_phrase}")


class HttpClient:
    """Async HTTP requests with timeout and retry.

    Server errors (5xx), timeouts and network failures are retried with
    exponential backoff starting at 1 s and capped at 10 s. Other responses,
    including 4xx, are returned to the caller as is.

    Example:
        >>> response = await HttpClient.fetch_with_retry(
        ...     "https://api.example.com/data", retries=5
        ... )
        >>> rows = response.json()
    """

    @staticmethod
    async def fetch_with_retry(
        url: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        body: Any = None,
        timeout: float = 30.0,
        retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> httpx.Response:
        """Send a request, retrying transient failures.

        ``body`` is sent only for methods other than GET and HEAD.

        Raises:
            HttpError: When all ``retries`` attempts fail.
        """
        method = method.upper()
        request_headers = {"User-Agent": USER_AGENT, **dict(headers or {})}
        content = body if body is not None and method not in ("GET", "HEAD") else None
        config = RetryConfig(
            max_attempts=retries,
            base_delay=1.0,
            max_delay=10.0,
            retryable_exceptions=(ServerError, httpx.TransportError),
        )

        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:

            async def attempt() -> httpx.Response:
                try:
                    response = await client.request(
                        method, url, headers=request_headers, content=content
                    )
                except httpx.TransportError as e:
                    logger.warning(f"{method} {url} failed: {e!r}")
                    raise
                if response.status_code >= 500:
                    logger.warning(f"{method} {url} returned {response.status_code}")
                    raise ServerError(response)
                return response

            try:
                return await retry_async(attempt, config=config)
            except RetryExhaustedError as e:
                raise HttpError(
                    f"Failed after {e.attempts} attempts: {e.last_error}",
                    attempts=e.attempts,
                    last_error=e.last_error,
                ) from e
