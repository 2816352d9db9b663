from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Retry/backoff engine for provider calls.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from .classify import classify_error, in_band_error, is_transport_error
from .errors import LLMApiError, LLMConfigurationError, LLMError
from .types import LLMResponse
from .utils import backoff_delay

logger = logging.getLogger(__name__)

ReturnT = TypeVar("ReturnT")
EmitFn = Callable[..., Awaitable[None]]
SleepFn = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    `max_attempts` counts retries after the first call, so 0 disables retry.
    The delay before retry k (0-based) is `base_backoff_s * 2**k`.
    """

    max_attempts: int = 0
    base_backoff_s: float = 0.5
    jitter_s: float = 0.0

    def __post_init__(self) -> None:
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise LLMConfigurationError("max_attempts must be an integer")
        if self.max_attempts < 0:
            raise LLMConfigurationError("max_attempts must be >= 0")
        if self.base_backoff_s < 0:
            raise LLMConfigurationError("base_backoff_s must be >= 0")
        if self.jitter_s < 0:
            raise LLMConfigurationError("jitter_s must be >= 0")

    def delay_for(self, attempt: int) -> float:
        return backoff_delay(attempt, self.base_backoff_s, self.jitter_s)


def _is_empty(result: Any) -> bool:
    if result is None:
        return True
    return isinstance(result, (dict, list, str, bytes)) and not result


def _usage_of(result: Any):
    return result.usage if isinstance(result, LLMResponse) else None


class RetryEngine:
    """
    Executes one provider call under a `RetryPolicy`.

    Transient failures are retried with exponential backoff while attempts
    remain and `can_retry()` allows it. Other transport failures are raised as a
    classified `LLMApiError` chained to the original exception; non-transport
    exceptions propagate unchanged.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        *,
        sleep: SleepFn | None = None,
        emit: EmitFn | None = None,
    ) -> None:
        self.policy = policy
        self._sleep = sleep
        self._emit = emit

    async def execute(
        self,
        fn: Callable[[], Awaitable[ReturnT]],
        *,
        request_id: str,
        model: str | None = None,
        can_retry: Callable[[], bool] | None = None,
    ) -> ReturnT | None:
        sleep = self._sleep or asyncio.sleep
        retries = self.policy.max_attempts

        await self._event("request_start", request_id=request_id, model=model, attempt=1)

        for attempt in range(retries + 1):
            started_at = time.monotonic()
            try:
                result = await fn()
            except LLMError as e:
                if isinstance(e, LLMApiError) and e.transient:
                    classified: LLMError = e
                else:
                    await self._event(
                        "request_error",
                        request_id=request_id,
                        model=model,
                        attempt=attempt + 1,
                        latency_ms=(time.monotonic() - started_at) * 1000.0,
                        error=e,
                    )
                    raise
            except Exception as e:
                if not is_transport_error(e):
                    # Application errors (callbacks, parsing) keep their own type.
                    await self._event(
                        "request_error",
                        request_id=request_id,
                        model=model,
                        attempt=attempt + 1,
                        latency_ms=(time.monotonic() - started_at) * 1000.0,
                        error=e,
                    )
                    raise
                classified = classify_error(e)
                if not (classified.transient and attempt < retries and self._allowed(can_retry)):
                    await self._event(
                        "request_error",
                        request_id=request_id,
                        model=model,
                        attempt=attempt + 1,
                        latency_ms=(time.monotonic() - started_at) * 1000.0,
                        error=classified,
                    )
                    raise classified from e
            else:
                latency_ms = (time.monotonic() - started_at) * 1000.0
                if _is_empty(result):
                    await self._event(
                        "request_success",
                        request_id=request_id,
                        model=model,
                        attempt=attempt + 1,
                        latency_ms=latency_ms,
                    )
                    return None

                error = in_band_error(result)
                if error is not None:
                    await self._event(
                        "request_error",
                        request_id=request_id,
                        model=model,
                        attempt=attempt + 1,
                        latency_ms=latency_ms,
                        error=error,
                    )
                    raise error

                await self._event(
                    "request_success",
                    request_id=request_id,
                    model=model,
                    attempt=attempt + 1,
                    latency_ms=latency_ms,
                    usage=_usage_of(result),
                )
                return result

            # Only transient failures reach this point.
            latency_ms = (time.monotonic() - started_at) * 1000.0
            if attempt >= retries or not self._allowed(can_retry):
                await self._event(
                    "request_error",
                    request_id=request_id,
                    model=model,
                    attempt=attempt + 1,
                    latency_ms=latency_ms,
                    error=classified,
                )
                raise classified

            delay = self.policy.delay_for(attempt)
            logger.debug(
                "Retrying request %s after %s (attempt %d/%d, sleeping %.2fs)",
                request_id,
                type(classified).__name__,
                attempt + 1,
                retries,
                delay,
            )
            await self._event(
                "retry",
                request_id=request_id,
                model=model,
                attempt=attempt + 1,
                latency_ms=latency_ms,
                error=classified,
            )
            await sleep(delay)

        raise LLMError(f"LLM call failed after {retries} retries")

    def _allowed(self, can_retry: Callable[[], bool] | None) -> bool:
        return can_retry is None or bool(can_retry())

    async def _event(
        self,
        event_type: str,
        *,
        request_id: str,
        model: str | None,
        attempt: int | None = None,
        latency_ms: float | None = None,
        usage=None,
        error: Exception | None = None,
    ) -> None:
        if self._emit is None:
            return
        await self._emit(
            event_type=event_type,
            request_id=request_id,
            model=model,
            attempt=attempt,
            latency_ms=latency_ms,
            usage=usage,
            error=error,
        )


