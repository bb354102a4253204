# pyright: standard

"""Outbound HTTP helpers: retry with exponential backoff and log redaction."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx

__all__ = [
    "BackoffError",
    "DEFAULT_CONNECT_TIMEOUT",
    "DEFAULT_HTTP_TIMEOUT",
    "DEFAULT_READ_TIMEOUT",
    "RETRY_STATUS",
    "RetryPolicy",
    "build_timeout",
    "httpx_get_with_backoff",
    "log_backoff_attempt",
    "redact_url_for_logs",
]

logger = logging.getLogger(__name__)

RETRY_STATUS = frozenset({429, 500, 502, 503, 504})
"""HTTP status codes treated as transient and eligible for backoff."""

DEFAULT_CONNECT_TIMEOUT = 10.0
"""Connect timeout (seconds) for upstream calls."""

DEFAULT_READ_TIMEOUT = 30.0
"""Read timeout (seconds) for upstream calls."""

DEFAULT_HTTP_TIMEOUT = httpx.Timeout(
    DEFAULT_READ_TIMEOUT,
    connect=DEFAULT_CONNECT_TIMEOUT,
    read=DEFAULT_READ_TIMEOUT,
)
"""Default per-request timeout so upstream calls cannot hang a request handler."""


class BackoffError(RuntimeError):
    """Raised when retries are exhausted on transient status codes."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class RetryPolicy:
    """How many times, and how patiently, a GET is retried."""

    retries: int = 3
    initial_backoff: float = 0.5
    max_backoff: float = 4.0
    retry_status: frozenset[int] = RETRY_STATUS


def build_timeout(read: float = DEFAULT_READ_TIMEOUT, connect: float = DEFAULT_CONNECT_TIMEOUT) -> httpx.Timeout:
    """Return an ``httpx.Timeout`` using *read* for read/pool and *connect* for connect/write."""

    return httpx.Timeout(float(read), connect=float(connect), read=float(read), write=float(connect))


def log_backoff_attempt(host: str, attempt: int, delay: float) -> None:
    """Emit a concise log entry describing the next retry window."""

    logger.info("GET %s retry #%d scheduled in %.2f s", host, attempt, delay)


async def httpx_get_with_backoff(
    client: httpx.AsyncClient,
    path: str,
    params: Mapping[str, object],
    *,
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
    on_backoff: Callable[[float, int], Awaitable[None]] | None = None,
    timeout: float | httpx.Timeout | None = None,
) -> httpx.Response:
    """Perform a GET, retrying network errors and transient statuses.

    The delay starts at ``policy.initial_backoff`` and doubles per attempt up
    to ``policy.max_backoff``; a numeric ``Retry-After`` header replaces the
    computed delay (still capped). Non-transient responses, including 4xx,
    are returned to the caller untouched.

    Raises:
        BackoffError: The final attempt still returned a transient status.
        httpx.RequestError: The final attempt failed at the transport level.
    """

    retry = policy or RetryPolicy()
    retry_codes = frozenset(retry.retry_status) if retry.retry_status else RETRY_STATUS
    backoff = max(0.1, retry.initial_backoff)
    upper_backoff = max(0.1, retry.max_backoff)
    sleep_impl = sleep or asyncio.sleep
    last_network_error: httpx.RequestError | None = None
    last_response: httpx.Response | None = None
    max_attempts = max(0, retry.retries) + 1
    effective_timeout = timeout if timeout is not None else DEFAULT_HTTP_TIMEOUT

    for attempt_index in range(max_attempts):
        try:
            response = await client.get(path, params=params, timeout=effective_timeout)
        except httpx.RequestError as exc:
            last_network_error = exc
            last_response = None
            delay = backoff
        else:
            if response.status_code in retry_codes:
                last_response = response
                delay = _retry_delay_from_response(response, backoff, upper_backoff)
            else:
                if attempt_index:
                    logger.info("GET %s completed after %d attempts", _host_label(client, path), attempt_index + 1)
                return response

        if attempt_index >= max_attempts - 1:
            break

        if on_backoff is not None:
            await on_backoff(delay, attempt_index + 1)
        await sleep_impl(delay)
        backoff = min(backoff * 2, upper_backoff)

    if last_response is not None:
        raise BackoffError(
            f"Request failed with status {last_response.status_code}",
            status_code=last_response.status_code,
        )
    if last_network_error is not None:
        raise last_network_error
    raise BackoffError("Request failed before receiving a response")


def redact_url_for_logs(url: str) -> str:
    """Return a safe identifier for URLs so API keys never reach the logs."""

    try:
        parsed = urlsplit(url)
    except (ValueError, AttributeError):
        return "url"
    if parsed.netloc:
        if parsed.hostname:
            return parsed.hostname
        return parsed.netloc
    return parsed.path or "url"


def _host_label(client: httpx.AsyncClient, path: str) -> str:
    base_url = getattr(client, "base_url", "") or ""
    return redact_url_for_logs(str(base_url) or path)


def _retry_delay_from_response(response: httpx.Response, fallback: float, cap: float) -> float:
    """Compute the delay for the next retry using Retry-After when available."""

    retry_after = response.headers.get("Retry-After")
    if retry_after:
        try:
            delay = float(retry_after)
        except ValueError:
            delay = fallback
    else:
        delay = fallback
    return max(0.1, min(delay, cap))
