from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines common provider-agnostic types used in LLM interactions.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, NotRequired, TypeAlias, TypedDict

from .errors import LLMValidationError
from .utils import safe_json_loads


JSONPrimitive: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]
JSONSchema: TypeAlias = dict[str, JSONValue]

Role = Literal["user", "assistant", "system", "tool"]
ROLES: tuple[str, ...] = ("system", "user", "assistant", "tool")


class TextContentPart(TypedDict):
    type: Literal["text"]
    text: str


class ImageURLRef(TypedDict):
    url: str
    detail: NotRequired[str]


class ImageURLContentPart(TypedDict):
    type: Literal["image_url"]
    image_url: ImageURLRef


class InputAudioPayload(TypedDict):
    data: str
    format: str


class InputAudioContentPart(TypedDict):
    type: Literal["input_audio"]
    input_audio: InputAudioPayload


class FileRef(TypedDict, total=False):
    file_data: str
    file_id: str
    filename: str


class FileContentPart(TypedDict):
    type: Literal["file"]
    file: FileRef


MessagePart: TypeAlias = (
    TextContentPart
    | ImageURLContentPart
    | InputAudioContentPart
    | FileContentPart
)
MessageContent: TypeAlias = str | list[MessagePart]


class ToolFunctionSpec(TypedDict):
    name: str
    parameters: JSONSchema
    description: NotRequired[str]


class ToolDefinition(TypedDict):
    type: Literal["function"]
    function: ToolFunctionSpec


class ToolChoiceFunction(TypedDict):
    name: str


class ToolChoiceNamed(TypedDict):
    type: Literal["function"]
    function: ToolChoiceFunction


ToolChoice: TypeAlias = Literal["auto", "none", "required"] | ToolChoiceNamed


@dataclass(frozen=True, slots=True)
class ToolCall:
    """
    Data-only representation of a model-returned tool call.

    `arguments` stays the serialized string the provider sent; callers decode
    it with `parsed_arguments()` when they are ready to execute the tool.
    """

    id: str | None = None
    name: str = ""
    arguments: str = ""
    type: str = "function"

    def parsed_arguments(self) -> dict[str, Any]:
        parsed = safe_json_loads(self.arguments) if self.arguments else None
        return parsed if parsed is not None else {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        """Build from the chat-completions `tool_calls[]` shape."""
        function = data.get("function")
        if not isinstance(function, dict):
            function = {}

        arguments = function.get("arguments")
        if isinstance(arguments, dict):
            arguments = json.dumps(arguments, ensure_ascii=True)
        elif not isinstance(arguments, str):
            arguments = ""

        name = function.get("name")
        call_type = data.get("type")
        return cls(
            id=data.get("id") if isinstance(data.get("id"), str) else None,
            name=name if isinstance(name, str) else "",
            arguments=arguments,
            type=call_type if isinstance(call_type, str) else "function",
        )


@dataclass(frozen=True, slots=True)
class Message:
    role: Role
    content: MessageContent = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.content, (str, list)):
            raise LLMValidationError(
                "Message.content must be a string or a list of parts",
                param="content",
            )
        if self.tool_calls and self.role != "assistant":
            raise LLMValidationError(
                "Message.tool_calls is only allowed on assistant messages",
                param="tool_calls",
            )
        if self.tool_call_id is not None and self.role != "tool":
            raise LLMValidationError(
                "Message.tool_call_id is only allowed on tool messages",
                param="tool_call_id",
            )

    @classmethod
    def build(
        cls,
        role: Role,
        text: str | None = None,
        *,
        image_url: str | None = None,
        input_audio: InputAudioPayload | None = None,
        file: FileRef | None = None,
        tool_calls: list[ToolCall | dict[str, Any]] | None = None,
        tool_call_id: str | None = None,
        name: str | None = None,
    ) -> "Message":
        """
        Build a message from loose keyword inputs.

        Content stays a plain string for text-only messages and becomes an
        ordered list of typed parts (text first) once any media part is given.
        """
        parts: list[MessagePart] = []
        if image_url is not None:
            parts.append({"type": "image_url", "image_url": {"url": image_url}})
        if input_audio is not None:
            parts.append({"type": "input_audio", "input_audio": dict(input_audio)})
        if file is not None:
            parts.append({"type": "file", "file": dict(file)})

        content: MessageContent = text or ""
        if parts:
            head: list[MessagePart] = [{"type": "text", "text": text}] if text else []
            content = [*head, *parts]

        calls = [
            tc if isinstance(tc, ToolCall) else ToolCall.from_dict(tc)
            for tc in (tool_calls or [])
        ]
        return cls(
            role=role,
            content=content,
            tool_calls=calls,
            tool_call_id=tool_call_id,
            name=name,
        )


def content_parts(message: Message) -> list[MessagePart]:
    """Canonical ordered part list for any message content."""
    if isinstance(message.content, str):
        if not message.content:
            return []
        return [{"type": "text", "text": message.content}]
    return list(message.content)


def message_text(message: Message) -> str:
    """Concatenated text parts of a message."""
    return "".join(
        part["text"]
        for part in content_parts(message)
        if part.get("type") == "text" and isinstance(part.get("text"), str)
    )


@dataclass(frozen=True, slots=True)
class Usage:
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


@dataclass(frozen=True, slots=True)
class Choice:
    index: int = 0
    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str | None = None
    role: str = "assistant"


@dataclass(frozen=True, slots=True)
class LLMResponse:
    """
    Canonical response returned by every adapter, streaming or not.

    Owned by the caller once returned; never mutated.
    """

    model: str | None = None
    id: str | None = None
    created: int | None = None
    choices: list[Choice] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    embeddings: list[list[float]] = field(default_factory=list)
    structured_response: JSONObject | None = None
    request_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def created_at(self) -> datetime | None:
        if self.created is None:
            return None
        return datetime.fromtimestamp(self.created, tz=timezone.utc)

    @property
    def text(self) -> str | None:
        return self.choices[0].content if self.choices else None

    @property
    def tool_calls(self) -> list[ToolCall]:
        return list(self.choices[0].tool_calls) if self.choices else []

    @property
    def finish_reason(self) -> str | None:
        return self.choices[0].finish_reason if self.choices else None

    @property
    def embedding(self) -> list[float] | None:
        return self.embeddings[0] if self.embeddings else None


@dataclass(frozen=True, slots=True)
class ToolCallDelta:
    """One fragment of a streamed tool call; only `arguments` repeats."""

    index: int = 0
    id: str | None = None
    type: str | None = None
    name: str | None = None
    arguments: str = ""


@dataclass(frozen=True, slots=True)
class DeltaEvent:
    """
    One parsed streaming fragment.

    `choice_index` is None for the terminal delta that only carries usage.
    """

    choice_index: int | None = 0
    content: str | None = None
    tool_calls: list[ToolCallDelta] = field(default_factory=list)
    finish_reason: str | None = None
    role: str | None = None
    usage: Usage | None = None
    id: str | None = None
    object: str | None = None
    created: int | None = None
    model: str | None = None


@dataclass(frozen=True, slots=True)
class ChatRequest:
    """
    Canonical chat request. Unset fields (None) fall back to configured
    defaults during normalization.
    """

    messages: list[Message] = field(default_factory=list)
    model: str | None = None
    tools: list[ToolDefinition] | None = None
    tool_choice: ToolChoice | None = None
    temperature: float | None = None
    top_p: float | None = None
    n: int | None = None
    logprobs: bool | None = None
    top_logprobs: int | None = None
    response_format: JSONObject | None = None
    reasoning_effort: str | None = None
    parallel_tool_calls: bool | None = None
    max_tokens: int | None = None
    stop: list[str] | None = None
    user: str | None = None
    metadata: JSONObject = field(default_factory=dict)

    def to_params(self) -> dict[str, Any]:
        """Caller-supplied parameters only; unset fields are omitted."""
        out: dict[str, Any] = {}
        for name in self.__dataclass_fields__:
            value = getattr(self, name)
            if value is None:
                continue
            if name == "metadata" and not value:
                continue
            out[name] = value
        return out


@dataclass(frozen=True, slots=True)
class EmbeddingRequest:
    text: str | list[str] = ""
    model: str | None = None
    encoding_format: str | None = None
    dimensions: int | None = None
    user: str | None = None


@dataclass(frozen=True, slots=True)
class LLMCapabilities:
    chat: bool = True
    streaming: bool = False
    tool_calling: bool = False
    structured_output: bool = False
    embeddings: bool = False
