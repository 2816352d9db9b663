"""
Example 02: Streaming chat with retries and lifecycle observers.

Run:
    CONDUIT_LLM_API_KEY=... python docs/library/examples/02_streaming_with_retries.py
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

from conduit.llms.config import LLMConfig
from conduit.llms.factory import create_llm
from conduit.llms.observability import LLMLifecycleEvent
from conduit.llms.types import ChatRequest, DeltaEvent, Message


def log_event(event: LLMLifecycleEvent) -> None:
    print(f"[{event.event_type}] attempt={event.attempt} error={event.error_class}")


def print_delta(delta: DeltaEvent) -> None:
    if delta.content:
        print(delta.content, end="", flush=True)


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    config = replace(LLMConfig.from_env(), max_retries=2, backoff_base_s=0.5)
    llm = create_llm(config=config, observers=[log_event])

    response = await llm.chat(
        ChatRequest(
            messages=[Message(role="user", content="Write a haiku about retries.")],
            temperature=0.7,
        ),
        on_delta=print_delta,
    )
    print()
    if response is not None:
        print("finish_reason:", response.finish_reason)
        print("usage:", response.usage)


if __name__ == "__main__":
    asyncio.run(main())
