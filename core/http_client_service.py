# core/http_client_service.py
"""Perform HTTP I/O for LLM provider integrations.

This module provides a small HTTP layer used by the LLM providers. It
centralizes concurrency limits, retry behavior, and error classification so
providers do not re-implement network concerns.

Notes:
    - Requests are concurrency-limited via a semaphore.
    - 429 and 503 responses, timeouts and connection errors are retried with
      exponential backoff. Other HTTP errors fail immediately.
    - Quota exhaustion (402, or 429 whose body mentions quota or billing) is
      never retried and raises `QuotaExceededError`.
    - Every failure leaves this module as a `ProviderTransportError`.
"""

import asyncio
from typing import Any

import httpx
import structlog

import config
from core.exceptions import ProviderTransportError, QuotaExceededError, create_error_context

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 503})
_QUOTA_MARKERS = ("quota", "billing")


def extract_error_message(response: httpx.Response) -> str:
    """Pull a human-readable error message out of a provider error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if body.get("message"):
            return str(body["message"])
    return response.text[:200]


def is_quota_error(status_code: int, message: str) -> bool:
    """Return True when a failed response signals account quota exhaustion."""
    if status_code == 402:
        return True
    if status_code == 429:
        lowered = message.lower()
        return any(marker in lowered for marker in _QUOTA_MARKERS)
    return False


class HTTPClientService:
    """Perform concurrency-limited HTTP requests with retries."""

    def __init__(
        self,
        timeout: float | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        max_concurrency: int | None = None,
    ):
        """Initialize the HTTP client.

        Args:
            timeout: Request timeout in seconds. Defaults to `config.HTTPX_TIMEOUT`.
            transport: Optional transport, used by tests to mock the network.
            max_concurrency: Concurrent request limit. Defaults to
                `config.MAX_CONCURRENT_LLM_CALLS`.
        """
        timeout = config.HTTPX_TIMEOUT if timeout is None else timeout
        concurrency = config.MAX_CONCURRENT_LLM_CALLS if max_concurrency is None else max_concurrency
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._semaphore = asyncio.Semaphore(concurrency)
        self.request_count = 0
        self._stats = {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,
            "retry_attempts": 0,
        }

        logger.debug(f"HTTPClientService initialized with timeout={timeout}s, concurrency_limit={concurrency}")

    async def aclose(self) -> None:
        """Close the underlying HTTP client and release resources."""
        await self._client.aclose()
        logger.debug("HTTPClientService closed")

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        max_retries: int | None = None,
    ) -> httpx.Response:
        """POST a JSON payload with retry behavior.

        Args:
            url: Target URL for the request.
            payload: JSON payload to send.
            headers: Optional HTTP headers.
            max_retries: Maximum attempts. When omitted, defaults to the
                configured value.

        Returns:
            The successful HTTP response.

        Raises:
            QuotaExceededError: The provider reported exhausted quota or credit.
            ProviderTransportError: A non-retryable status occurred or retries
                were exhausted.
        """
        async with self._semaphore:
            self._stats["total_requests"] += 1
            self.request_count += 1

            effective_headers = headers or {}
            effective_max_retries = max(1, max_retries if max_retries is not None else config.LLM_RETRY_ATTEMPTS)

            last_exception: Exception | None = None
            last_status: int | None = None
            last_message = ""

            for attempt in range(effective_max_retries):
                try:
                    logger.debug(f"HTTP POST to {url} (attempt {attempt + 1}/{effective_max_retries})")

                    response = await self._client.post(url, json=payload, headers=effective_headers)
                    response.raise_for_status()

                    self._stats["successful_requests"] += 1
                    logger.debug(f"HTTP POST successful: {response.status_code}")
                    return response

                except httpx.TimeoutException as e:
                    last_exception, last_status, last_message = e, None, str(e) or "request timed out"
                    logger.warning(f"HTTP timeout (attempt {attempt + 1}): {e}")

                except httpx.HTTPStatusError as e:
                    last_exception = e
                    last_status = e.response.status_code
                    last_message = extract_error_message(e.response)

                    logger.warning(f"HTTP status error (attempt {attempt + 1}): {last_status} - {last_message}")

                    if is_quota_error(last_status, last_message):
                        self._stats["failed_requests"] += 1
                        logger.error("LLM provider quota exhausted, not retrying", status_code=last_status, url=url)
                        raise QuotaExceededError(
                            f"LLM provider quota exceeded (status {last_status}): {last_message}",
                            status_code=last_status,
                            details=create_error_context(url=url),
                        ) from e

                    if last_status not in RETRYABLE_STATUS_CODES:
                        self._stats["failed_requests"] += 1
                        logger.error(f"Non-retryable status {last_status}, aborting")
                        raise ProviderTransportError(
                            f"LLM API error (status {last_status}): {last_message}",
                            status_code=last_status,
                            retryable=last_status >= 500,
                            details=create_error_context(url=url),
                        ) from e

                except httpx.RequestError as e:
                    last_exception, last_status, last_message = e, None, str(e) or type(e).__name__
                    logger.warning(f"HTTP request error (attempt {attempt + 1}): {e}")

                # Apply retry delay if not the last attempt
                if attempt < effective_max_retries - 1:
                    delay = config.LLM_RETRY_DELAY_SECONDS * (2**attempt)
                    logger.info(f"Retrying in {delay:.2f}s due to: {type(last_exception).__name__}")
                    await asyncio.sleep(delay)
                    self._stats["retry_attempts"] += 1

            # All retries failed
            self._stats["failed_requests"] += 1
            logger.error(f"HTTP POST failed after {effective_max_retries} attempts: {last_message}")
            raise ProviderTransportError(
                f"LLM request failed after {effective_max_retries} attempts: {last_message}",
                status_code=last_status,
                retryable=True,
                details=create_error_context(url=url, error_type=type(last_exception).__name__),
            ) from last_exception

    def get_statistics(self) -> dict[str, Any]:
        """Return HTTP request statistics for monitoring."""
        total = self._stats["total_requests"]
        return {
            **self._stats,
            "success_rate": (self._stats["successful_requests"] / total * 100) if total > 0 else 0,
            "failure_rate": (self._stats["failed_requests"] / total * 100) if total > 0 else 0,
            "avg_retries_per_request": (self._stats["retry_attempts"] / total) if total > 0 else 0,
        }
