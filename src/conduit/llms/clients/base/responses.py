from __future__ import annotations

"""
Shared base adapter for providers exposing OpenAI-style Responses APIs.

This class centralizes:
  - normalized parameters -> Responses payload mapping
  - stream event normalization into `DeltaEvent`s
  - response/tool-call extraction

Concrete adapters only implement provider-specific message mapping.
"""

from abc import abstractmethod
from typing import Any

from ..shared.normalization import extract_usage, to_plain_dict
from ...errors import LLMApiError
from ...llm import LLM
from ...types import Choice, DeltaEvent, LLMCapabilities, LLMResponse, Message, ToolCall, ToolCallDelta

INCOMPLETE_FINISH_REASONS = {
    "max_output_tokens": "length",
    "content_filter": "content_filter",
}


class ResponsesClientBase(LLM):
    """Provider-agnostic base for Responses-compatible clients."""

    CHAT_PATH = "/responses"
    USES_RESPONSES_API = True

    _CAPABILITIES = LLMCapabilities(
        chat=True,
        streaming=True,
        tool_calling=True,
        structured_output=True,
        embeddings=True,
    )

    @property
    def capabilities(self) -> LLMCapabilities:
        """Responses adapters expose chat/stream/tool/structured/embed."""
        return self._CAPABILITIES

    def build_chat_payload(self, params: dict[str, Any], *, stream: bool) -> dict[str, Any]:
        """Map normalized parameters into a Responses API payload."""
        payload: dict[str, Any] = {
            "model": params["model"],
            "input": self._messages_to_responses_input(params["messages"]),
        }

        if "max_tokens" in params:
            payload["max_output_tokens"] = params["max_tokens"]
        for name in ("temperature", "top_p", "top_logprobs", "parallel_tool_calls", "user", "metadata"):
            if name in params:
                payload[name] = params[name]

        if "reasoning_effort" in params:
            payload["reasoning"] = {"effort": params["reasoning_effort"]}

        if "tools" in params:
            payload["tools"] = [self._tool_to_responses_tool(t) for t in params["tools"]]

        if "tool_choice" in params:
            payload["tool_choice"] = self._tool_choice_to_responses_tool_choice(params["tool_choice"])

        if "response_format" in params:
            payload["text"] = {"format": self._response_format_to_text_format(params["response_format"])}

        if stream:
            payload["stream"] = True
        return payload

    def _messages_to_responses_input(self, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert normalized messages to Responses API input items."""
        out: list[dict[str, Any]] = []
        for message in messages:
            out.extend(self._message_to_responses_input_items(message))
        return out

    def _tool_to_responses_tool(self, tool: dict[str, Any]) -> dict[str, Any]:
        """Flatten a function tool definition into the Responses tool schema."""
        function = tool["function"]
        out: dict[str, Any] = {
            "type": "function",
            "name": function["name"],
            "parameters": function.get("parameters", {}),
        }

        description = function.get("description")
        if isinstance(description, str):
            out["description"] = description

        return out

    def _tool_choice_to_responses_tool_choice(self, tool_choice: Any) -> Any:
        if isinstance(tool_choice, str):
            return tool_choice
        return {"type": "function", "name": tool_choice["function"]["name"]}

    def _response_format_to_text_format(self, response_format: dict[str, Any]) -> dict[str, Any]:
        if response_format.get("type") != "json_schema":
            return dict(response_format)

        spec = to_plain_dict(response_format.get("json_schema"))
        return {"type": "json_schema", **spec}

    def parse_chat_response(self, raw: dict[str, Any]) -> LLMResponse:
        """Normalize a raw Responses body into `LLMResponse`."""
        output = raw.get("output")
        output_items = [to_plain_dict(item) for item in output] if isinstance(output, list) else []

        tool_calls = self._extract_tool_calls_from_responses_output(output_items)
        model = raw.get("model")
        created = raw.get("created_at")
        choice = Choice(
            index=0,
            content=self._extract_text_from_responses_output(output_items),
            tool_calls=tool_calls,
            finish_reason=self._finish_reason(raw.get("status"), tool_calls),
        )
        return LLMResponse(
            model=model if isinstance(model, str) else None,
            id=raw.get("id") if isinstance(raw.get("id"), str) else None,
            created=created if isinstance(created, int) else None,
            choices=[choice],
            usage=extract_usage(raw),
            raw=raw,
        )

    def parse_delta(self, chunk: dict[str, Any]) -> DeltaEvent | None:
        """
        Translate one Responses stream event.

        Unknown events are skipped; `error` and `response.failed` raise.
        """
        event_type = chunk.get("type")

        if event_type == "response.created":
            response = to_plain_dict(chunk.get("response"))
            created = response.get("created_at")
            return DeltaEvent(
                choice_index=None,
                id=response.get("id") if isinstance(response.get("id"), str) else None,
                object="response",
                created=created if isinstance(created, int) else None,
                model=response.get("model") if isinstance(response.get("model"), str) else None,
            )

        if event_type == "response.output_text.delta":
            delta = chunk.get("delta")
            if not isinstance(delta, str) or not delta:
                return None
            return DeltaEvent(choice_index=0, content=delta)

        if event_type == "response.output_item.added":
            item = to_plain_dict(chunk.get("item"))
            if item.get("type") != "function_call":
                return None
            arguments = item.get("arguments")
            return DeltaEvent(
                choice_index=0,
                tool_calls=[
                    ToolCallDelta(
                        index=self._output_index(chunk),
                        id=self._call_id(item),
                        type="function",
                        name=item.get("name") if isinstance(item.get("name"), str) else None,
                        arguments=arguments if isinstance(arguments, str) else "",
                    )
                ],
            )

        if event_type == "response.function_call_arguments.delta":
            delta = chunk.get("delta")
            if not isinstance(delta, str) or not delta:
                return None
            return DeltaEvent(
                choice_index=0,
                tool_calls=[ToolCallDelta(index=self._output_index(chunk), arguments=delta)],
            )

        if event_type == "response.completed":
            response = to_plain_dict(chunk.get("response"))
            output = response.get("output")
            items = [to_plain_dict(item) for item in output] if isinstance(output, list) else []
            tool_calls = self._extract_tool_calls_from_responses_output(items)
            return DeltaEvent(
                choice_index=0,
                finish_reason=self._finish_reason(response.get("status"), tool_calls),
                usage=extract_usage(response),
            )

        if event_type == "response.incomplete":
            response = to_plain_dict(chunk.get("response"))
            details = to_plain_dict(response.get("incomplete_details"))
            return DeltaEvent(
                choice_index=0,
                finish_reason=INCOMPLETE_FINISH_REASONS.get(details.get("reason"), "length"),
                usage=extract_usage(response),
            )

        if event_type == "error":
            raise self._stream_error(chunk)

        if event_type == "response.failed":
            response = to_plain_dict(chunk.get("response"))
            raise self._stream_error(to_plain_dict(response.get("error")))

        return None

    def _extract_text_from_responses_output(self, output_items: list[dict[str, Any]]) -> str | None:
        """First `output_text` part of the first message item."""
        for row in output_items:
            if row.get("type") != "message":
                continue

            content = row.get("content")
            if isinstance(content, str):
                return content
            if isinstance(content, list):
                for part in content:
                    block = to_plain_dict(part)
                    if block.get("type") == "output_text" and isinstance(block.get("text"), str):
                        return block["text"]
            return None

        return None

    def _extract_tool_calls_from_responses_output(
        self,
        output_items: list[dict[str, Any]],
    ) -> list[ToolCall]:
        out: list[ToolCall] = []
        for row in output_items:
            if row.get("type") != "function_call":
                continue

            arguments = row.get("arguments")
            out.append(
                ToolCall(
                    id=self._call_id(row),
                    name=row.get("name") if isinstance(row.get("name"), str) else "",
                    arguments=arguments if isinstance(arguments, str) and arguments else "{}",
                )
            )

        return out

    def _stream_error(self, detail: dict[str, Any]) -> LLMApiError:
        message = detail.get("message") or detail.get("code") or "response failed"
        return LLMApiError(f"API error: {message}")

    def _finish_reason(self, status: Any, tool_calls: list[ToolCall]) -> str:
        if status == "completed":
            return "stop"
        return "tool_calls" if tool_calls else "stop"

    def _call_id(self, item: dict[str, Any]) -> str | None:
        call_id = item.get("call_id")
        if isinstance(call_id, str):
            return call_id
        maybe_id = item.get("id")
        return maybe_id if isinstance(maybe_id, str) else None

    def _output_index(self, chunk: dict[str, Any]) -> int:
        output_index = chunk.get("output_index")
        return output_index if isinstance(output_index, int) else 0

    @abstractmethod
    def _message_to_responses_input_items(self, message: Message) -> list[dict[str, Any]]:
        """Provider-specific mapping from one normalized message to input items."""
