from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Reassembly of streamed deltas into one canonical response.
"""

from dataclasses import dataclass, field
from typing import Any

from .types import Choice, DeltaEvent, LLMResponse, ToolCall, ToolCallDelta, Usage


@dataclass(slots=True)
class _ToolCallBuffer:
    id: str | None = None
    type: str | None = None
    name: str | None = None
    arguments: list[str] = field(default_factory=list)

    def add(self, frag: ToolCallDelta) -> None:
        if self.id is None and frag.id:
            self.id = frag.id
        if self.type is None and frag.type:
            self.type = frag.type
        if self.name is None and frag.name:
            self.name = frag.name
        if frag.arguments:
            self.arguments.append(frag.arguments)

    def build(self) -> ToolCall:
        return ToolCall(
            id=self.id,
            name=self.name or "",
            arguments="".join(self.arguments),
            type=self.type or "function",
        )


@dataclass(slots=True)
class _ChoiceBuffer:
    role: str | None = None
    text: list[str] = field(default_factory=list)
    tool_calls: dict[int, _ToolCallBuffer] = field(default_factory=dict)
    last_finish_reason: str | None = None
    latest_finish_reason: str | None = None

    def add(self, delta: DeltaEvent) -> None:
        if self.role is None and delta.role:
            self.role = delta.role
        if delta.content:
            self.text.append(delta.content)
        for frag in delta.tool_calls:
            self.tool_calls.setdefault(frag.index, _ToolCallBuffer()).add(frag)

        self.last_finish_reason = delta.finish_reason
        if delta.finish_reason:
            self.latest_finish_reason = delta.finish_reason

    def build(self, index: int) -> Choice:
        calls = [self.tool_calls[i].build() for i in sorted(self.tool_calls)]
        content = "".join(self.text) if self.text else None
        if content is None and not calls:
            content = ""
        return Choice(
            index=index,
            content=content,
            tool_calls=calls,
            finish_reason=self.last_finish_reason or self.latest_finish_reason,
            role=self.role or "assistant",
        )


class StreamAggregator:
    """
    Accumulates the deltas of one streamed call.

    Deltas are grouped by choice index and tool-call fragments by
    (choice index, call index). A delta without a choice index only carries
    usage. One instance serves exactly one call.
    """

    def __init__(self) -> None:
        self._choices: dict[int, _ChoiceBuffer] = {}
        self._meta: dict[str, Any] = {}
        self._usage: Usage | None = None
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    def add(self, delta: DeltaEvent) -> None:
        if self._count == 0:
            self._meta = {
                "id": delta.id,
                "object": delta.object,
                "created": delta.created,
                "model": delta.model,
            }
        self._count += 1

        if delta.usage is not None:
            self._usage = delta.usage
        if delta.choice_index is None:
            return
        self._choices.setdefault(delta.choice_index, _ChoiceBuffer()).add(delta)

    def finalize(self) -> LLMResponse | None:
        if self._count == 0:
            return None

        choices = [self._choices[i].build(i) for i in sorted(self._choices)]
        raw = {k: v for k, v in self._meta.items() if v is not None}
        return LLMResponse(
            model=self._meta.get("model"),
            id=self._meta.get("id"),
            created=self._meta.get("created"),
            choices=choices,
            usage=self._usage or Usage(),
            raw=raw,
        )
