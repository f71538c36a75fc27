# iplocate/workflows/activities/base.py
# Shared HTTP plumbing for activities
#
# What it does:
# 1. Owns the process-wide httpx.AsyncClient used by every activity
# 2. Turns transport / status / decoding errors into CapabilityFailure
# 3. Logs every outbound exchange through log_execution
#
# Retry policy lives on the workflow side (RetryPolicy per execute_activity
# call). Nothing here retries on its own: one call, one request.
#
# Timeout reminder when calling these activities from a workflow:
# - start_to_close: one attempt, worker start to result
# - schedule_to_close: all attempts together

from typing import Any, Optional

import httpx

from iplocate.core.config import settings
from iplocate.core.logging import get_logger, log_execution
from iplocate.workflows.errors import CapabilityFailure

logger = get_logger(__name__)

# Shared client, created on first use
_http_client: Optional[httpx.AsyncClient] = None


def get_http_client() -> httpx.AsyncClient:
    """
    Return the shared HTTP client (singleton)

    Returns:
        httpx.AsyncClient: client with the configured timeout
    """
    global _http_client

    if _http_client is None:
        _http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
        logger.debug(f"HTTP client created, timeout={settings.HTTP_TIMEOUT_SECONDS}s")

    return _http_client


def set_http_client(client: Optional[httpx.AsyncClient]) -> None:
    """Replace the shared client (worker bootstrap, tests)"""
    global _http_client
    _http_client = client


async def close_http_client() -> None:
    """Close the shared client on worker shutdown"""
    global _http_client

    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
        logger.debug("HTTP client closed")


@log_execution()
async def fetch_text(url: str) -> str:
    """
    GET a URL and return the body as text

    Raises:
        CapabilityFailure: retryable, on transport errors or non-2xx status
    """
    client = get_http_client()

    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise CapabilityFailure(
            f"HTTP {e.response.status_code} from {url}"
        ) from e
    except httpx.HTTPError as e:
        raise CapabilityFailure(f"HTTP GET error: {e}") from e

    return response.text


@log_execution()
async def fetch_json(url: str, params: Optional[dict] = None) -> Any:
    """
    GET a URL and decode the JSON body

    Raises:
        CapabilityFailure: retryable, on transport errors, non-2xx status or
            a body that is not JSON
    """
    client = get_http_client()

    try:
        response = await client.get(url, params=params)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise CapabilityFailure(
            f"HTTP {e.response.status_code} from {url}"
        ) from e
    except httpx.HTTPError as e:
        raise CapabilityFailure(f"HTTP GET error: {e}") from e

    try:
        return response.json()
    except ValueError as e:
        raise CapabilityFailure(f"JSON unmarshal error: {e}") from e
