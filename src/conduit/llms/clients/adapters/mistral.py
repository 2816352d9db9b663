from __future__ import annotations

"""
Mistral AI adapter over its chat-completions style API.
"""

import logging
from typing import Any

from ..base.completions import ChatCompletionsClientBase
from ...normalizer import EmbeddingRules
from ...parameters import ProviderConfig
from ...types import Message

MISTRAL_BASE_URL = "https://api.mistral.ai/v1"


class MistralAIClient(ChatCompletionsClientBase):
    """
    Concrete adapter for Mistral AI.

    Mistral spells the forced tool choice `any`, takes image URLs as plain
    strings and has no audio or file input. Embeddings have a fixed size, so
    `dimensions` is never sent.
    """

    PROVIDER_CONFIG = ProviderConfig(
        defaults={"model": "mistral-large-latest"},
        ignored=frozenset(
            {"parallel_tool_calls", "logprobs", "top_logprobs", "user", "reasoning_effort"}
        ),
    )
    DEFAULT_BASE_URL = MISTRAL_BASE_URL
    DEFAULT_EMBEDDING_MODEL = "mistral-embed"
    EMBEDDING_RULES = EmbeddingRules(supports_dimensions=False)
    SUPPORTED_PART_TYPES = frozenset({"text", "image_url"})
    ALLOWED_TOOL_CHOICES = frozenset({"auto", "none", "any", "required"})
    IGNORED_PARAM_LOG_LEVEL = logging.WARNING

    @property
    def provider_id(self) -> str:
        return "mistral"

    def tool_choice_to_wire(self, tool_choice: Any) -> Any:
        if tool_choice == "required":
            return "any"
        return tool_choice

    def message_to_wire(self, message: Message) -> dict[str, Any]:
        out = super().message_to_wire(message)
        content = out.get("content")
        if isinstance(content, list):
            out["content"] = [
                {"type": "image_url", "image_url": part["image_url"]["url"]}
                if part.get("type") == "image_url"
                else part
                for part in content
            ]
        return out

    def build_embedding_payload(self, params: dict[str, Any]) -> dict[str, Any]:
        payload = dict(params)
        payload.pop("user", None)
        return payload
