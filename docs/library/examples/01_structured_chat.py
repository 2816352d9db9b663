"""
Example 01: Direct chat with structured output.

Run:
    CONDUIT_LLM_API_KEY=... python docs/library/examples/01_structured_chat.py
"""

from __future__ import annotations

import asyncio
import os

from pydantic import BaseModel, Field

from conduit.llms.factory import create_llm
from conduit.llms.types import ChatRequest, Message


class Plan(BaseModel):
    title: str = Field(min_length=1)
    steps: list[str] = Field(min_length=2, max_length=8)


async def main() -> None:
    adapter = os.getenv("CONDUIT_LLM_ADAPTER", "openai")
    llm = create_llm(adapter)

    req = ChatRequest(
        model=os.getenv("CONDUIT_LLM_MODEL") or None,
        messages=[
            Message(
                role="user",
                content="Create a small onboarding plan for a new backend engineer.",
            )
        ],
    )

    response = await llm.chat(req, response_model=Plan)
    if response is None:
        print("provider returned nothing")
        return

    print("adapter:", adapter)
    print("request_id:", response.request_id)
    print("model:", response.model)
    print("structured_response:", response.structured_response)
    print("usage:", response.usage)


if __name__ == "__main__":
    asyncio.run(main())
