"""
Shared HTTP plumbing for the Leonardo REST API.

Both the submitter and the poller go through `send`, so authorization headers,
per-call timeouts and error classification are applied the same way.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from leonardo_tool.errors import (
    LeonardoHTTPError,
    LeonardoTransportError,
    MalformedResponseError,
)

logger = logging.getLogger(__name__)

LEONARDO_API_BASE = "https://cloud.leonardo.ai/api/rest/v1"
DEFAULT_TIMEOUT_SECONDS = 30.0
MAX_ERROR_DETAIL_BYTES = 4_000


def build_headers(api_key: str, with_body: bool = False) -> dict[str, str]:
    """Headers for an authenticated JSON call."""
    headers = {
        "Accept": "application/json",
        "Authorization": f"Bearer {api_key}",
    }
    if with_body:
        headers["Content-Type"] = "application/json"
    return headers


def response_excerpt(
    response: httpx.Response,
    max_bytes: int = MAX_ERROR_DETAIL_BYTES,
) -> str:
    """
    Return at most `max_bytes` of the response body as text.

    Falls back to the HTTP reason phrase when the body is empty.
    """
    raw = response.content[:max_bytes]
    text = raw.decode(response.encoding or "utf-8", errors="ignore").strip()
    return text or response.reason_phrase


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    api_key: str,
    timeout: float,
    error_context: str,
    json_body: Optional[dict[str, Any]] = None,
) -> httpx.Response:
    """
    Issue one API call and fail on anything but a 2xx answer.

    Args:
        client: Client to send through
        method: HTTP method
        url: Absolute URL or path relative to the client's base URL
        api_key: Bearer credential
        timeout: Timeout for this call only, in seconds
        error_context: Message prefix used for HTTP failures
        json_body: Optional JSON payload

    Returns:
        The successful response

    Raises:
        LeonardoHTTPError: Non-success HTTP status
        LeonardoTransportError: No response (connection failure, timeout)
    """
    try:
        response = await client.request(
            method,
            url,
            json=json_body,
            headers=build_headers(api_key, with_body=json_body is not None),
            timeout=timeout,
        )
    except httpx.TimeoutException as e:
        raise LeonardoTransportError(
            f"{error_context}: timed out after {timeout:g}s"
        ) from e
    except httpx.RequestError as e:
        raise LeonardoTransportError(f"{error_context}: {e}") from e

    logger.debug("%s %s -> %d", method, url, response.status_code)

    if not response.is_success:
        raise LeonardoHTTPError(
            error_context, response.status_code, response_excerpt(response)
        )
    return response


def read_json(response: httpx.Response, error_message: str) -> dict[str, Any]:
    """Decode a JSON object body, raising MalformedResponseError otherwise."""
    try:
        data = response.json()
    except ValueError as e:
        raise MalformedResponseError(error_message) from e
    if not isinstance(data, dict):
        raise MalformedResponseError(error_message)
    return data
