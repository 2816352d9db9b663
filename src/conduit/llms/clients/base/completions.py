from __future__ import annotations

"""
Shared base adapter for providers exposing chat-completions style APIs.

This class centralizes:
  - normalized parameters -> `messages[]` payload mapping
  - flat `choices[]` response parsing
  - `choices[0].delta` stream chunk parsing

Concrete adapters only tweak wire details (tool choice spelling, message
mapping, ignored parameters).
"""

from typing import Any

from ..shared.normalization import (
    chat_message_to_wire,
    extract_choices,
    extract_tool_call_deltas,
    extract_usage,
    to_plain_dict,
)
from ...llm import LLM
from ...types import DeltaEvent, LLMCapabilities, LLMResponse, Message


class ChatCompletionsClientBase(LLM):
    """Provider-agnostic base for chat-completions compatible clients."""

    _CAPABILITIES = LLMCapabilities(
        chat=True,
        streaming=True,
        tool_calling=True,
        structured_output=True,
        embeddings=True,
    )

    @property
    def capabilities(self) -> LLMCapabilities:
        return self._CAPABILITIES

    def build_chat_payload(self, params: dict[str, Any], *, stream: bool) -> dict[str, Any]:
        """Map normalized parameters into a chat-completions payload."""
        payload: dict[str, Any] = {}
        for name, value in params.items():
            if name == "messages":
                payload["messages"] = [self.message_to_wire(m) for m in value]
            elif name == "tool_choice":
                payload["tool_choice"] = self.tool_choice_to_wire(value)
            else:
                payload[name] = value

        if stream:
            payload["stream"] = True
            payload["stream_options"] = {"include_usage": True}
        return payload

    def message_to_wire(self, message: Message) -> dict[str, Any]:
        return chat_message_to_wire(message)

    def tool_choice_to_wire(self, tool_choice: Any) -> Any:
        return tool_choice

    def parse_chat_response(self, raw: dict[str, Any]) -> LLMResponse:
        model = raw.get("model")
        created = raw.get("created")
        return LLMResponse(
            model=model if isinstance(model, str) else None,
            id=raw.get("id") if isinstance(raw.get("id"), str) else None,
            created=created if isinstance(created, int) else None,
            choices=extract_choices(raw),
            usage=extract_usage(raw),
            raw=raw,
        )

    def parse_delta(self, chunk: dict[str, Any]) -> DeltaEvent | None:
        usage = extract_usage(chunk) if isinstance(chunk.get("usage"), dict) else None
        meta = {
            "id": chunk.get("id") if isinstance(chunk.get("id"), str) else None,
            "object": chunk.get("object") if isinstance(chunk.get("object"), str) else None,
            "created": chunk.get("created") if isinstance(chunk.get("created"), int) else None,
            "model": chunk.get("model") if isinstance(chunk.get("model"), str) else None,
        }

        choices = chunk.get("choices")
        if not isinstance(choices, list) or not choices:
            # The trailing usage chunk carries no choice at all.
            if usage is None:
                return None
            return DeltaEvent(choice_index=None, usage=usage, **meta)

        choice = to_plain_dict(choices[0])
        delta = to_plain_dict(choice.get("delta"))
        index = choice.get("index")
        content = delta.get("content")
        finish_reason = choice.get("finish_reason")
        role = delta.get("role")
        return DeltaEvent(
            choice_index=index if isinstance(index, int) else 0,
            content=content if isinstance(content, str) else None,
            tool_calls=extract_tool_call_deltas(delta.get("tool_calls")),
            finish_reason=finish_reason if isinstance(finish_reason, str) else None,
            role=role if isinstance(role, str) else None,
            usage=usage,
            **meta,
        )
