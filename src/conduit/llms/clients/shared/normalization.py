from __future__ import annotations

"""
Shared client-side normalization helpers used across LLM adapters.
"""

from typing import Any

from ...types import Choice, Message, ToolCall, ToolCallDelta, Usage, content_parts


def to_plain_dict(value: Any) -> dict[str, Any]:
    """Dict view of a wire object; anything else maps to an empty dict."""
    return value if isinstance(value, dict) else {}


def extract_usage(raw_dict: dict[str, Any]) -> Usage:
    """
    Normalize usage token counters from provider payloads.

    Chat-completions bodies report prompt/completion tokens; responses-style
    bodies report input/output tokens. Either naming is accepted.
    """
    usage = raw_dict.get("usage")
    if not isinstance(usage, dict):
        return Usage()

    prompt_tokens = usage.get("input_tokens")
    if prompt_tokens is None:
        prompt_tokens = usage.get("prompt_tokens")

    completion_tokens = usage.get("output_tokens")
    if completion_tokens is None:
        completion_tokens = usage.get("completion_tokens")

    total_tokens = usage.get("total_tokens")
    if total_tokens is None and isinstance(prompt_tokens, int) and isinstance(completion_tokens, int):
        total_tokens = prompt_tokens + completion_tokens

    return Usage(
        prompt_tokens=prompt_tokens if isinstance(prompt_tokens, int) else None,
        completion_tokens=completion_tokens if isinstance(completion_tokens, int) else None,
        total_tokens=total_tokens if isinstance(total_tokens, int) else None,
    )


def extract_tool_calls(raw_tool_calls: Any) -> list[ToolCall]:
    """Extract tool calls from the chat-completions `tool_calls[]` shape."""
    if not isinstance(raw_tool_calls, list):
        return []
    return [ToolCall.from_dict(tc) for tc in raw_tool_calls if isinstance(tc, dict)]


def extract_tool_call_deltas(raw_tool_calls: Any) -> list[ToolCallDelta]:
    """Extract streamed tool-call fragments from `delta.tool_calls[]`."""
    if not isinstance(raw_tool_calls, list):
        return []

    out: list[ToolCallDelta] = []
    for position, item in enumerate(raw_tool_calls):
        tc = to_plain_dict(item)
        function = to_plain_dict(tc.get("function"))
        index = tc.get("index")
        arguments = function.get("arguments")
        out.append(
            ToolCallDelta(
                index=index if isinstance(index, int) else position,
                id=tc.get("id") if isinstance(tc.get("id"), str) else None,
                type=tc.get("type") if isinstance(tc.get("type"), str) else None,
                name=function.get("name") if isinstance(function.get("name"), str) else None,
                arguments=arguments if isinstance(arguments, str) else "",
            )
        )
    return out


def extract_choices(raw_dict: dict[str, Any]) -> list[Choice]:
    """Canonical choices from a chat-completions `choices[]` array."""
    raw_choices = raw_dict.get("choices")
    if not isinstance(raw_choices, list):
        return []

    out: list[Choice] = []
    for position, item in enumerate(raw_choices):
        row = to_plain_dict(item)
        message = to_plain_dict(row.get("message"))
        index = row.get("index")
        content = message.get("content")
        finish_reason = row.get("finish_reason")
        role = message.get("role")
        out.append(
            Choice(
                index=index if isinstance(index, int) else position,
                content=content if isinstance(content, str) else None,
                tool_calls=extract_tool_calls(message.get("tool_calls")),
                finish_reason=finish_reason if isinstance(finish_reason, str) else None,
                role=role if isinstance(role, str) else "assistant",
            )
        )
    return out


def extract_embeddings(raw_dict: dict[str, Any]) -> list[list[float]]:
    data = raw_dict.get("data")
    if not isinstance(data, list):
        return []

    rows = [to_plain_dict(row) for row in data]
    rows.sort(key=lambda row: row.get("index") if isinstance(row.get("index"), int) else 0)

    embeddings: list[list[float]] = []
    for row in rows:
        emb = row.get("embedding")
        if isinstance(emb, list):
            embeddings.append([float(v) for v in emb])
    return embeddings


def chat_message_to_wire(message: Message) -> dict[str, Any]:
    """
    Chat-completions wire form of one message.

    Text-only content goes out as a plain string; any media part switches the
    whole content to the typed-part list.
    """
    parts = content_parts(message)
    if all(part.get("type") == "text" for part in parts):
        content: Any = "".join(part["text"] for part in parts)
    else:
        content = [dict(part) for part in parts]

    out: dict[str, Any] = {"role": message.role, "content": content}
    if message.tool_calls:
        out["tool_calls"] = [tc.to_dict() for tc in message.tool_calls]
        if not parts:
            out["content"] = None
    if message.tool_call_id is not None:
        out["tool_call_id"] = message.tool_call_id
    if message.name is not None:
        out["name"] = message.name
    return out
