"""
Timeout-bounded fetch.

Wraps a single outbound request with a hard deadline so a hung upstream turns
into a FetchTimeoutError instead of stalling the aggregation that awaits it.
"""

import asyncio
import time
from typing import Any

import httpx

from vanity_mirror.exceptions import FetchTimeoutError
from vanity_mirror.logging import log_http_request, log_http_response

DEFAULT_TIMEOUT_MS = 15_000


async def fetch_with_timeout(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    **kwargs: Any,
) -> httpx.Response:
    """
    Send a request and give up after ``timeout_ms`` milliseconds.

    The deadline covers the whole exchange including reading the body. When it
    fires, the in-flight request task is cancelled and the connection released.

    Args:
        client: The httpx client that owns the connection pool
        method: HTTP method
        url: Absolute URL, or a path relative to the client's base_url
        timeout_ms: Deadline in milliseconds (default: 15000)
        **kwargs: Passed through to ``httpx.AsyncClient.request``

    Returns:
        The httpx response (any status code)

    Raises:
        FetchTimeoutError: If the deadline expires first
        httpx.RequestError: On any other transport failure (unchanged)
    """
    log_http_request(method, url, kwargs.get("params"), kwargs.get("json"))
    started = time.perf_counter()

    try:
        response = await asyncio.wait_for(
            client.request(method, url, **kwargs),
            timeout=timeout_ms / 1000,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise FetchTimeoutError(url, timeout_ms) from e

    log_http_response(
        response.status_code,
        url,
        elapsed_ms=(time.perf_counter() - started) * 1000,
    )
    return response
