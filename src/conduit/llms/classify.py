from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Classification of transport failures into the `LLMApiError` taxonomy.
"""

import asyncio
import socket
from typing import Any, Mapping

import httpx

from .errors import (
    LLMApiError,
    LLMBadRequestError,
    LLMConflictError,
    LLMConnectionError,
    LLMForbiddenError,
    LLMNotFoundError,
    LLMRateLimitError,
    LLMServerError,
    LLMServiceUnavailableError,
    LLMTimeoutError,
    LLMUnauthorizedError,
    LLMUnprocessableEntityError,
)
from .utils import clamp_str

MAX_BODY_CHARS = 2000
REDACTED_HEADERS = frozenset({"authorization", "api-key", "x-api-key", "proxy-authorization"})

_STATUS_ERRORS: dict[int, type[LLMApiError]] = {
    400: LLMBadRequestError,
    401: LLMUnauthorizedError,
    403: LLMForbiddenError,
    404: LLMNotFoundError,
    409: LLMConflictError,
    422: LLMUnprocessableEntityError,
    429: LLMRateLimitError,
    503: LLMServiceUnavailableError,
}


def error_for_status(status: int) -> type[LLMApiError]:
    cls = _STATUS_ERRORS.get(status)
    if cls is not None:
        return cls
    if 500 <= status < 600:
        return LLMServerError
    return LLMApiError


def is_transport_error(exc: BaseException) -> bool:
    """True for failures raised by the transport or a provider SDK."""
    if isinstance(exc, (httpx.HTTPError, OSError, asyncio.TimeoutError)):
        return True
    return extract_status_code(exc) is not None


def classify_error(exc: BaseException) -> LLMApiError:
    """
    Map a raw transport exception onto a classified `LLMApiError`.

    Timeouts and connection failures get dedicated messages without a body;
    HTTP status failures carry the full request/response trace.
    """
    if isinstance(exc, LLMApiError):
        return exc

    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, socket.timeout)):
        return LLMTimeoutError(f"Request timed out: {_describe(exc)}")

    if isinstance(exc, (httpx.ConnectError, ConnectionError)):
        return LLMConnectionError(f"Failed to connect to the API: {_describe(exc)}")

    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        cls = error_for_status(status)
        return cls(
            f"API error: Server responded with {status}",
            status_code=status,
            diagnostic=format_http_trace(exc.request, exc.response),
        )

    status = extract_status_code(exc)
    if status is not None:
        return error_for_status(status)(
            f"API error: Server responded with {status}: {_describe(exc)}",
            status_code=status,
        )

    return LLMApiError(f"API error: {_describe(exc)}")


def in_band_error(raw: Any) -> LLMApiError | None:
    """Return the error carried inside a successful body, if any."""
    if not isinstance(raw, Mapping):
        return None
    error = raw.get("error")
    if not error:
        return None

    if isinstance(error, Mapping):
        message = error.get("message") or error.get("code") or str(dict(error))
    else:
        message = str(error)
    return LLMApiError(f"API error: {message}")


def extract_status_code(exc: BaseException) -> int | None:
    """Best-effort HTTP status extraction from SDK-style exceptions."""
    for attr in ("status_code", "status", "http_status"):
        val = getattr(exc, attr, None)
        if isinstance(val, int) and 100 <= val < 600:
            return val
        if isinstance(val, str) and val.isdigit():
            return int(val)

    response = getattr(exc, "response", None)
    if response is not None:
        val = getattr(response, "status_code", None)
        if isinstance(val, int):
            return val
    return None


def format_http_trace(request: httpx.Request, response: httpx.Response) -> str:
    return "\n".join(
        [
            f"API error: Server responded with {response.status_code}",
            "--- Request ---",
            f"{request.method} {request.url}",
            "Headers:",
            _format_headers(request.headers),
            "Body:",
            _body_text(request.content),
            "--- Response ---",
            "Headers:",
            _format_headers(response.headers),
            "Body:",
            _response_text(response),
        ]
    )


def _format_headers(headers: httpx.Headers) -> str:
    lines = []
    for key, value in headers.items():
        if key.lower() in REDACTED_HEADERS:
            value = "[REDACTED]"
        lines.append(f"  {key}: {value}")
    return "\n".join(lines)


def _body_text(content: bytes) -> str:
    return clamp_str(content.decode("utf-8", errors="replace"), MAX_BODY_CHARS)


def _response_text(response: httpx.Response) -> str:
    try:
        return _body_text(response.content)
    except httpx.ResponseNotRead:
        return "<body not read>"


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__
