from __future__ import annotations

"""
OpenAI adapters: chat completions and the Responses API.
"""

from typing import Any

from ..base.completions import ChatCompletionsClientBase
from ..base.responses import ResponsesClientBase
from ...capabilities import ensure_api_mode_supported
from ...errors import LLMValidationError
from ...normalizer import EmbeddingRules
from ...parameters import ProviderConfig
from ...types import Message, content_parts, message_text

OPENAI_BASE_URL = "https://api.openai.com/v1"
OPENAI_DEFAULT_MODEL = "gpt-4o-mini"
OPENAI_EMBEDDINGS = EmbeddingRules(
    dimensions_by_model={
        "text-embedding-ada-002": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-3-small": 1536,
    },
    # ada-002 has a fixed size and rejects the field.
    no_dimension_models=frozenset({"text-embedding-ada-002"}),
)


class OpenAIClient(ChatCompletionsClientBase):
    """Concrete adapter for the OpenAI chat completions API."""

    PROVIDER_CONFIG = ProviderConfig(defaults={"model": OPENAI_DEFAULT_MODEL, "n": 1})
    DEFAULT_BASE_URL = OPENAI_BASE_URL
    DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
    EMBEDDING_RULES = OPENAI_EMBEDDINGS

    @property
    def provider_id(self) -> str:
        return "openai"


class OpenAIResponsesClient(ResponsesClientBase):
    """
    Concrete adapter for the OpenAI Responses API.

    Reasoning models are not served here; a reasoning default model is
    rejected at construction, a reasoning per-call model at normalization.
    """

    PROVIDER_CONFIG = ProviderConfig(
        defaults={"model": OPENAI_DEFAULT_MODEL},
        ignored=frozenset({"n", "stop", "logprobs"}),
    )
    DEFAULT_BASE_URL = OPENAI_BASE_URL
    DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
    EMBEDDING_RULES = OPENAI_EMBEDDINGS
    SUPPORTED_PART_TYPES = frozenset({"text", "image_url", "file"})

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        ensure_api_mode_supported(
            self.parameters.default_for("model"),
            use_responses_api=True,
            prefixes=self.config.reasoning_model_prefixes,
        )

    @property
    def provider_id(self) -> str:
        return "openai_responses"

    def _message_to_responses_input_items(self, message: Message) -> list[dict[str, Any]]:
        """Convert one normalized message into OpenAI Responses input items."""
        if message.role == "tool":
            if message.tool_call_id is None:
                raise LLMValidationError(
                    "tool messages need a tool_call_id for the responses API",
                    param="messages",
                )
            return [
                {
                    "type": "function_call_output",
                    "call_id": message.tool_call_id,
                    "output": message_text(message),
                }
            ]

        items: list[dict[str, Any]] = []
        parts = content_parts(message)
        if parts or not message.tool_calls:
            items.append(
                {
                    "type": "message",
                    "role": message.role,
                    "content": self._content_to_responses(message, parts),
                }
            )

        for tc in message.tool_calls:
            items.append(
                {
                    "type": "function_call",
                    "call_id": tc.id,
                    "name": tc.name,
                    "arguments": tc.arguments or "{}",
                }
            )
        return items

    def _content_to_responses(
        self,
        message: Message,
        parts: list[dict[str, Any]],
    ) -> str | list[dict[str, Any]]:
        if isinstance(message.content, str):
            return message.content

        text_type = "output_text" if message.role == "assistant" else "input_text"
        out: list[dict[str, Any]] = []
        for part in parts:
            p_type = part["type"]
            if p_type == "text":
                out.append({"type": text_type, "text": part["text"]})
            elif p_type == "image_url":
                image: dict[str, Any] = {"type": "input_image", "image_url": part["image_url"]["url"]}
                if "detail" in part["image_url"]:
                    image["detail"] = part["image_url"]["detail"]
                out.append(image)
            elif p_type == "file":
                out.append({"type": "input_file", **part["file"]})
        return out
