from __future__ import annotations

"""
Typed observability primitives for LLM lifecycle events.

Observers are the crash/issue reporting seam: anything that wants to forward
failures to an error tracker subscribes here instead of being called directly.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, Protocol, Sequence, cast

from .types import Usage

logger = logging.getLogger(__name__)

LLMLifecycleEventType = Literal[
    "request_start",
    "retry",
    "request_success",
    "request_error",
]


@dataclass(frozen=True, slots=True)
class LLMLifecycleEvent:
    """
    One normalized lifecycle event emitted while executing a provider call.

    Observer callbacks are best-effort only; their failures never change the
    outcome of the call.
    """

    event_type: LLMLifecycleEventType
    request_id: str
    provider_id: str
    model: str | None = None
    attempt: int | None = None
    latency_ms: float | None = None
    usage: Usage | None = None
    error_class: str | None = None
    error_message: str | None = None
    status_code: int | None = None


class LLMObserver(Protocol):
    """Observer callback protocol."""

    def __call__(self, event: LLMLifecycleEvent) -> None | Awaitable[None]:
        ...


LLMObserverCallback = Callable[[LLMLifecycleEvent], None | Awaitable[None]]


async def notify_observers(
    observers: Sequence[LLMObserver],
    event: LLMLifecycleEvent,
) -> None:
    for observer in observers:
        try:
            result = observer(event)
            if inspect.isawaitable(result):
                await cast(Awaitable[Any], result)
        except Exception:
            logger.debug(
                "Observer %r failed on %s event", observer, event.event_type, exc_info=True
            )
            continue
