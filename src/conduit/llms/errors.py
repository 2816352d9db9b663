from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the exception taxonomy raised by the llms package.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Stable, machine-readable classification of provider failures."""

    TIMEOUT = "timeout"
    CONNECTION_FAILURE = "connection_failure"
    RATE_LIMITED = "rate_limited"
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNPROCESSABLE = "unprocessable"
    SERVER_ERROR = "server_error"
    SERVICE_UNAVAILABLE = "service_unavailable"
    UNKNOWN_API_ERROR = "unknown_api_error"


class LLMError(Exception):
    """Base exception for all conduit LLM-related errors."""

    pass


class LLMValidationError(LLMError, ValueError):
    """
    The request is malformed and was rejected before any network access.
    `param` names the offending parameter when one can be identified.
    """

    def __init__(self, message: str, *, param: str | None = None) -> None:
        super().__init__(message)
        self.param = param


class LLMConfigurationError(LLMError):
    pass


class LLMCapabilityError(LLMError):
    """
    Raised when the selected provider adapter does not support a requested
    capability (e.g., embeddings or streaming).
    """

    pass


class LLMCapabilityConflictError(LLMCapabilityError):
    """
    The model and API mode can never be combined, for example a reasoning
    model requested through the responses-style API.
    """

    pass


class LLMInvalidResponseError(LLMError):
    """
    The LLM returned a response that we couldn't parse or validate.
    This may indicate a schema mismatch, provider issue, or unexpected content.
    """

    pass


class LLMEmptyResponseError(LLMError):
    """Raised for an empty provider result when the client treats it as a failure."""

    pass


class LLMApiError(LLMError):
    """
    A classified provider failure.

    `diagnostic` holds the full human-readable report (including the
    request/response trace for HTTP failures); `str(error)` is the same text.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN_API_ERROR
    transient: bool = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        diagnostic: str | None = None,
    ) -> None:
        super().__init__(diagnostic or message)
        self.status_code = status_code
        self.diagnostic = diagnostic or message


class LLMRetryableError(LLMApiError):
    """
    Transient failures: rate limits, timeouts, provider issues, etc.
    These errors may be retried with backoff.
    """

    transient = True


class LLMTimeoutError(LLMRetryableError):
    kind = ErrorKind.TIMEOUT


class LLMConnectionError(LLMRetryableError):
    kind = ErrorKind.CONNECTION_FAILURE


class LLMRateLimitError(LLMRetryableError):
    kind = ErrorKind.RATE_LIMITED


class LLMServerError(LLMRetryableError):
    kind = ErrorKind.SERVER_ERROR


class LLMServiceUnavailableError(LLMServerError):
    kind = ErrorKind.SERVICE_UNAVAILABLE


class LLMBadRequestError(LLMApiError):
    kind = ErrorKind.BAD_REQUEST


class LLMUnauthorizedError(LLMApiError):
    kind = ErrorKind.UNAUTHORIZED


class LLMForbiddenError(LLMApiError):
    kind = ErrorKind.FORBIDDEN


class LLMNotFoundError(LLMApiError):
    kind = ErrorKind.NOT_FOUND


class LLMConflictError(LLMApiError):
    kind = ErrorKind.CONFLICT


class LLMUnprocessableEntityError(LLMApiError):
    kind = ErrorKind.UNPROCESSABLE
