"""
HTTP client utilities for puppetgraph.

One :class:`HTTPClient` is shared by the Forge and Git metadata
collaborators for a whole session. It owns the httpx connection pool
(HTTP/2), caps the number of requests in flight, and retries transient
failures:

- timeouts, connection errors and 5xx answers are retried with
  exponential back-off, up to ``max_retries`` times;
- ``429 Too Many Requests`` waits for ``Retry-After`` and does not count
  as a failed attempt, up to :data:`MAX_RATE_LIMIT_WAITS` times in a row;
- any other 4xx is final and raised at once.

Every failure surfaces as :class:`NetworkError` carrying the status code
when there is one, so callers can treat 400/404 as "no such module".
"""

from __future__ import annotations

import httpx
import random
import asyncio
from typing import Any, Dict, Optional, cast

from puppetgraph.utils.logger import get_logger
from puppetgraph.__version__ import __version__
from puppetgraph.exceptions import NetworkError
from puppetgraph.constants import (
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT,
    MAX_RATE_LIMIT_WAITS,
    USER_AGENT_TEMPLATE,
)

logger = get_logger("http")

__all__ = ["HTTPClient"]

_TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.NetworkError)


class HTTPClient:
    """Session-wide async GET client for JSON APIs and raw file hosts.

    Args:
        timeout: Per-request timeout in seconds.
        max_retries: Retries after a transient failure; ``0`` disables them.
        max_concurrency: Requests allowed in flight at once.

    Example:
        >>> async with HTTPClient(timeout=10) as http:
        ...     page = await http.get_json(
        ...         "https://forgeapi.puppet.com/v3/releases",
        ...         params={"module": "puppetlabs-stdlib"},
        ...     )
    """

    def __init__(
        self,
        *,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        self.max_concurrency = max_concurrency
        self.rate_limit_waits = MAX_RATE_LIMIT_WAITS

        self._client: Optional[httpx.AsyncClient] = None
        self._slots = asyncio.Semaphore(max_concurrency)

    async def __aenter__(self) -> "HTTPClient":
        self._open()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    def _open(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                http2=True,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers={
                    "User-Agent": USER_AGENT_TEMPLATE.format(version=__version__),
                    "Accept": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the connection pool; safe to call more than once."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """GET ``url`` and return the first non-error response.

        Raises:
            NetworkError: On a final 4xx, on too many consecutive 429s, or
                once retries for transient failures are used up.
        """
        client = self._open()
        url = url.strip()
        failures = 0
        waits = 0

        while True:
            cause: Optional[Exception] = None
            try:
                async with self._slots:
                    response = await client.request("GET", url, **kwargs)
            except _TRANSIENT_ERRORS as exc:
                cause = exc
                reason = f"{type(exc).__name__}: {exc}"
            else:
                status = response.status_code
                if status == 429:
                    waits += 1
                    await self._wait_for_rate_limit(response, url, waits)
                    continue
                waits = 0
                if status < 400:
                    return response
                if status < 500:
                    raise _client_error(response, url)
                reason = f"HTTP {status}"

            failures += 1
            if failures > self.max_retries:
                raise NetworkError(
                    f"Request failed after {failures} attempts: {url}",
                    url=url,
                ) from cause

            delay = _backoff_delay(failures)
            logger.warning(
                "%s for %s; retry %d/%d in %.2fs",
                reason,
                url,
                failures,
                self.max_retries,
                delay,
            )
            await asyncio.sleep(delay)

    async def get_json(self, url: str, **kwargs: Any) -> Dict[str, Any]:
        """GET ``url`` and decode the body as a JSON object.

        The body is decoded whatever its content type, since raw file hosts
        serve ``metadata.json`` as ``text/plain``.

        Raises:
            NetworkError: If the request fails or the body is not a JSON
                object.
        """
        response = await self.get(url, **kwargs)

        try:
            data = response.json()
        except ValueError as exc:
            raise NetworkError(
                f"Invalid JSON response from {url}",
                url=url,
                response_body=response.text,
            ) from exc

        if not isinstance(data, dict):
            raise NetworkError(
                f"Expected JSON object from {url}",
                url=url,
                response_body=response.text,
            )
        return cast(Dict[str, Any], data)

    async def _wait_for_rate_limit(
        self, response: httpx.Response, url: str, waits: int
    ) -> None:
        if waits > self.rate_limit_waits:
            raise NetworkError(
                f"Still rate limited after {self.rate_limit_waits} waits: {url}",
                url=url,
                status_code=429,
            )
        delay = _retry_after_seconds(response)
        logger.warning(
            "Rate limited by %s; waiting %.1fs (%d/%d)",
            response.url.host,
            delay,
            waits,
            self.rate_limit_waits,
        )
        await asyncio.sleep(delay)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _client_error(response: httpx.Response, url: str) -> NetworkError:
    status = response.status_code
    message = (
        f"Resource not found: {url}"
        if status == 404
        else f"HTTP {status} error for {url}"
    )
    return NetworkError(
        message,
        url=url,
        status_code=status,
        response_body=response.text,
    )


def _backoff_delay(failures: int) -> float:
    """1s, 2s, 4s, ... plus up to 300ms of jitter."""
    return 2 ** (failures - 1) + random.uniform(0.0, 0.3)


def _retry_after_seconds(response: httpx.Response) -> float:
    """Parse ``Retry-After`` as seconds; the HTTP-date form counts as 1s."""
    try:
        return max(0.0, float(response.headers.get("Retry-After", "1")))
    except ValueError:
        return 1.0
