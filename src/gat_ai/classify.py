"""Turn transport failures and HTTP statuses into actionable user-facing errors.

Classification only builds messages. It never retries and never changes
control flow: the classified error is still raised to the caller.
"""

from __future__ import annotations

import json
import socket
from typing import Any

import httpx

from gat_ai.errors import GatError, TransportError, UpstreamStatusError

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)

_RECONFIGURE_HINT = "run gat config set"

TIMEOUT_MESSAGE = "Request timed out, check your network or retry later"
UNREACHABLE_MESSAGE = "Cannot reach the API host, check your network or base URL"


def upstream_message(body: str) -> str:
    """Best-effort extraction of the API's own error message from a response body."""
    try:
        data: Any = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return ""
    if not isinstance(data, dict):
        return ""
    error = data.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(error, str):
        return error
    message = data.get("message")
    return message if isinstance(message, str) else ""


def classify_status(status_code: int, body: str, model: str) -> UpstreamStatusError:
    """Map a non-2xx response to a single-line, actionable message."""
    api_msg = upstream_message(body)
    suffix = f": {api_msg}" if api_msg else ""

    if status_code == 400:
        message = f"Invalid request parameters{suffix}"
    elif status_code == 401:
        message = f"API key is invalid or expired, {_RECONFIGURE_HINT} to reconfigure"
    elif status_code == 403:
        message = f"Access denied for model {model}, your plan may not include it"
    elif status_code == 429:
        message = (
            f"Rate limited or quota exhausted (model: {model})\n"
            "  · try a free-tier model such as glm-4.7-flash / glm-4.5-flash\n"
            f"  · or {_RECONFIGURE_HINT} to switch model or provider"
        )
    elif status_code == 500:
        message = "AI service internal error, please retry later"
    elif status_code == 503:
        message = "AI service temporarily unavailable, please retry later"
    else:
        message = f"Request failed (HTTP {status_code}){suffix}"

    return UpstreamStatusError(message, status_code=status_code, detail=body[:300])


def is_dns_failure(exc: BaseException) -> bool:
    """Walk the cause chain looking for a resolver failure."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return True
        text = str(current).lower()
        if any(marker in text for marker in _DNS_MARKERS):
            return True
        current = current.__cause__ or current.__context__
    return False


def classify(exc: BaseException, model: str) -> BaseException:
    """Classify a failure raised while talking to the API.

    Errors that are already classified pass through unchanged, as does
    anything that is not an httpx failure.
    """
    if isinstance(exc, GatError):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        try:
            body = response.text
        except httpx.ResponseNotRead:
            body = ""
        return classify_status(response.status_code, body, model)
    if isinstance(exc, httpx.TimeoutException):
        return TransportError(TIMEOUT_MESSAGE)
    if isinstance(exc, httpx.ConnectError) and is_dns_failure(exc):
        return TransportError(UNREACHABLE_MESSAGE)
    if isinstance(exc, httpx.HTTPError):
        return TransportError(str(exc) or type(exc).__name__)
    return exc
