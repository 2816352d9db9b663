from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Request normalization: parameter merging, validation and capability rules.
Everything here runs before the transport is touched.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from .capabilities import (
    DEFAULT_REASONING_MODEL_PREFIXES,
    apply_reasoning_constraints,
    ensure_api_mode_supported,
)
from .errors import LLMValidationError
from .parameters import ChatParameters
from .types import ROLES, ChatRequest, EmbeddingRequest, Message

logger = logging.getLogger(__name__)

ENCODING_FORMATS = frozenset({"float", "base64"})
TOOL_CHOICES = frozenset({"auto", "none", "required"})
PART_TYPES = frozenset({"text", "image_url", "input_audio", "file"})


@dataclass(frozen=True, slots=True)
class EmbeddingRules:
    """Model->dimension table and the models that refuse a `dimensions` field."""

    dimensions_by_model: Mapping[str, int] = field(default_factory=dict)
    no_dimension_models: frozenset[str] = frozenset()
    supports_dimensions: bool = True


class RequestNormalizer:
    def __init__(
        self,
        parameters: ChatParameters,
        *,
        provider_id: str,
        allowed_roles: Iterable[str] = ROLES,
        supported_part_types: Iterable[str] = PART_TYPES,
        allowed_tool_choices: Iterable[str] = TOOL_CHOICES,
        use_responses_api: bool = False,
        reasoning_model_prefixes: Iterable[str] = DEFAULT_REASONING_MODEL_PREFIXES,
        embedding_rules: EmbeddingRules | None = None,
        default_embedding_model: str | None = None,
        default_dimensions: int | None = None,
        ignored_log_level: int = logging.INFO,
    ) -> None:
        self.parameters = parameters
        self.provider_id = provider_id
        self.allowed_roles = frozenset(allowed_roles)
        self.supported_part_types = frozenset(supported_part_types)
        self.allowed_tool_choices = frozenset(allowed_tool_choices)
        self.use_responses_api = use_responses_api
        self.reasoning_model_prefixes = tuple(reasoning_model_prefixes)
        self.embedding_rules = embedding_rules or EmbeddingRules()
        self.default_embedding_model = default_embedding_model
        self.default_dimensions = default_dimensions
        self.ignored_log_level = ignored_log_level

    def normalize_chat(self, req: ChatRequest) -> dict[str, Any]:
        """
        Produce validated, wire-ready canonical parameters for one chat call.

        Raises `LLMValidationError` or `LLMCapabilityConflictError`; both are
        raised before any payload is built.
        """
        params, dropped = self.parameters.to_params(req.to_params())
        for name in dropped:
            logger.log(
                self.ignored_log_level,
                "Ignoring unsupported parameter '%s' for provider %s",
                name,
                self.provider_id,
            )

        self._validate_chat_params(params)
        ensure_api_mode_supported(
            params["model"],
            use_responses_api=self.use_responses_api,
            prefixes=self.reasoning_model_prefixes,
        )
        return apply_reasoning_constraints(params, prefixes=self.reasoning_model_prefixes)

    def normalize_embedding(self, req: EmbeddingRequest) -> dict[str, Any]:
        """Produce the canonical embedding parameters, injecting dimensions."""
        text = req.text
        if isinstance(text, str):
            if not text.strip():
                raise LLMValidationError("text argument is required", param="text")
        elif not isinstance(text, list) or not text:
            raise LLMValidationError("text argument is required", param="text")
        else:
            for idx, item in enumerate(text):
                if not isinstance(item, str) or not item.strip():
                    raise LLMValidationError(
                        f"text[{idx}] must be a non-empty string", param="text"
                    )

        model = req.model or self.default_embedding_model
        if not isinstance(model, str) or not model.strip():
            raise LLMValidationError("model argument is required", param="model")

        if req.encoding_format is not None and req.encoding_format not in ENCODING_FORMATS:
            raise LLMValidationError(
                "encoding_format must be either float or base64",
                param="encoding_format",
            )

        params: dict[str, Any] = {"input": text, "model": model}
        if req.encoding_format is not None:
            params["encoding_format"] = req.encoding_format
        if req.user is not None:
            params["user"] = req.user

        if req.dimensions is not None and (
            isinstance(req.dimensions, bool)
            or not isinstance(req.dimensions, int)
            or req.dimensions < 1
        ):
            raise LLMValidationError("dimensions must be an integer >= 1", param="dimensions")

        rules = self.embedding_rules
        dimensions = req.dimensions if req.dimensions is not None else self.default_dimensions
        if dimensions is None:
            dimensions = rules.dimensions_by_model.get(model)
        if (
            dimensions is not None
            and rules.supports_dimensions
            and model not in rules.no_dimension_models
        ):
            params["dimensions"] = dimensions
        return params

    def _validate_chat_params(self, params: Mapping[str, Any]) -> None:
        messages = params.get("messages")
        if not isinstance(messages, list) or not messages:
            raise LLMValidationError("messages argument is required", param="messages")

        model = params.get("model")
        if not isinstance(model, str) or not model.strip():
            raise LLMValidationError("model argument is required", param="model")

        tools = params.get("tools")
        if "tool_choice" in params and not tools:
            raise LLMValidationError(
                "'tool_choice' is only allowed when 'tools' are specified.",
                param="tool_choice",
            )

        for idx, message in enumerate(messages):
            self._validate_message(message, idx)

        if tools is not None:
            if not isinstance(tools, list):
                raise LLMValidationError("tools must be a list", param="tools")
            for idx, tool in enumerate(tools):
                self._validate_tool_definition(tool, idx)

        if "tool_choice" in params:
            self._validate_tool_choice(params["tool_choice"], tools or [])

        self.parameters.validate(params)

    def _validate_message(self, message: Any, idx: int) -> None:
        if not isinstance(message, Message):
            raise LLMValidationError(
                f"messages[{idx}] must be a Message", param="messages"
            )

        if message.role not in self.allowed_roles:
            allowed = ", ".join(sorted(self.allowed_roles))
            raise LLMValidationError(
                f"messages[{idx}] has role '{message.role}' which provider "
                f"{self.provider_id} does not accept (allowed: {allowed})",
                param="messages",
            )

        if isinstance(message.content, str):
            return

        for p_idx, part in enumerate(message.content):
            where = f"messages[{idx}].content[{p_idx}]"
            if not isinstance(part, dict):
                raise LLMValidationError(f"{where} must be an object", param="messages")

            p_type = part.get("type")
            if p_type not in PART_TYPES:
                raise LLMValidationError(
                    f"{where} has unsupported part type '{p_type}'", param="messages"
                )
            if p_type not in self.supported_part_types:
                raise LLMValidationError(
                    f"{where}: provider {self.provider_id} does not support "
                    f"'{p_type}' content",
                    param="messages",
                )

            if p_type == "text" and not isinstance(part.get("text"), str):
                raise LLMValidationError(f"{where}.text must be a string", param="messages")

            if p_type == "image_url":
                image_url = part.get("image_url")
                if not isinstance(image_url, dict) or not isinstance(image_url.get("url"), str):
                    raise LLMValidationError(
                        f"{where}.image_url.url must be a string", param="messages"
                    )

            if p_type == "input_audio":
                audio = part.get("input_audio")
                if not isinstance(audio, dict) or not isinstance(audio.get("data"), str):
                    raise LLMValidationError(
                        f"{where}.input_audio.data must be a string", param="messages"
                    )

            if p_type == "file":
                ref = part.get("file")
                if not isinstance(ref, dict) or not (
                    isinstance(ref.get("file_data"), str) or isinstance(ref.get("file_id"), str)
                ):
                    raise LLMValidationError(
                        f"{where}.file needs file_data or file_id", param="messages"
                    )

    def _validate_tool_definition(self, tool: Any, idx: int) -> None:
        if not isinstance(tool, dict) or tool.get("type") != "function":
            raise LLMValidationError(f"tools[{idx}] must have type='function'", param="tools")

        function = tool.get("function")
        if not isinstance(function, dict):
            raise LLMValidationError(f"tools[{idx}].function must be an object", param="tools")

        name = function.get("name")
        if not isinstance(name, str) or not name.strip():
            raise LLMValidationError(
                f"tools[{idx}].function.name must be a non-empty string", param="tools"
            )

        if not isinstance(function.get("parameters", {}), dict):
            raise LLMValidationError(
                f"tools[{idx}].function.parameters must be an object", param="tools"
            )

    def _validate_tool_choice(self, tool_choice: Any, tools: list[Any]) -> None:
        if isinstance(tool_choice, str):
            if tool_choice not in self.allowed_tool_choices:
                allowed = ", ".join(sorted(self.allowed_tool_choices))
                raise LLMValidationError(
                    f"tool_choice '{tool_choice}' is not supported by provider "
                    f"{self.provider_id} (allowed: {allowed})",
                    param="tool_choice",
                )
            return

        if not isinstance(tool_choice, dict) or tool_choice.get("type") != "function":
            raise LLMValidationError(
                "tool_choice dict must be a function choice", param="tool_choice"
            )

        fn = tool_choice.get("function")
        name = fn.get("name") if isinstance(fn, dict) else None
        if not isinstance(name, str) or not name.strip():
            raise LLMValidationError(
                "tool_choice.function.name must be set", param="tool_choice"
            )

        known = {t["function"]["name"] for t in tools}
        if name not in known:
            raise LLMValidationError(
                f"tool_choice names unknown tool '{name}'", param="tool_choice"
            )
