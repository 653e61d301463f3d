"""
Shared httpx plumbing.

``send`` is the one place where httpx responses and exceptions become the
error taxonomy in ``issue_autopilot.errors``. Retrying is not done here; the
caller wraps calls with a RetryPolicy.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from ..errors import ConflictError, MalformedResponseError, TransportError

MAX_ERROR_BODY_CHARS = 250


def _excerpt(response: httpx.Response) -> str:
    text = response.text or ""
    return text[:MAX_ERROR_BODY_CHARS]


def send(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    allow_not_found: bool = False,
    **kwargs: Any,
) -> Optional[httpx.Response]:
    """Send a request and translate failures.

    Returns:
        The response, or None for a 404 when ``allow_not_found`` is set

    Raises:
        ConflictError: HTTP 409
        TransportError: connection failures (transient) or other non-2xx
    """
    try:
        response = client.request(method, url, **kwargs)
    except httpx.TimeoutException as e:
        raise TransportError(f"{method} {url} timed out: {e}", transient=True) from e
    except httpx.RequestError as e:
        raise TransportError(f"{method} {url} failed: {e}", transient=True) from e

    if response.status_code == 404 and allow_not_found:
        return None
    if response.status_code == 409:
        raise ConflictError(_excerpt(response))
    if response.is_error:
        raise TransportError(
            f"{response.reason_phrase} - {_excerpt(response)}",
            status_code=response.status_code,
        )
    return response


def json_body(response: httpx.Response) -> Any:
    """Decode a JSON body or raise MalformedResponseError."""
    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponseError(
            f"Expected JSON body: {_excerpt(response)}",
            status_code=response.status_code,
        ) from e
