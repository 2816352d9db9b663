from __future__ import annotations
import os

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

"""
from dataclasses import dataclass, field
from typing import Any, Mapping


def _csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True, slots=True)
class LLMConfig:
    # Adapter selection
    adapter: str = "openai"
    use_responses_api: bool = False

    # Models (None falls back to the adapter's own default)
    default_model: str | None = None
    embedding_model: str | None = None
    default_dimensions: int | None = None

    # Reliability
    timeout_s: float = 30.0
    max_retries: int = 0
    backoff_base_s: float = 0.5
    backoff_jitter_s: float = 0.0

    # Parameter normalization
    parameter_defaults: Mapping[str, Any] = field(default_factory=dict)
    ignored_params: tuple[str, ...] = ()
    reasoning_model_prefixes: tuple[str, ...] = ("o1", "o3")
    empty_response_as_error: bool = False

    api_base_url: str | None = None
    api_key: str | None = None

    @staticmethod
    def from_env() -> "LLMConfig":
        dimensions = os.getenv("CONDUIT_EMBED_DIMENSIONS")
        return LLMConfig(
            adapter=os.getenv("CONDUIT_LLM_ADAPTER", "openai"),
            use_responses_api=_flag(os.getenv("CONDUIT_USE_RESPONSES_API", "false")),
            default_model=os.getenv("CONDUIT_LLM_MODEL") or None,
            embedding_model=os.getenv("CONDUIT_EMBED_MODEL") or None,
            default_dimensions=int(dimensions) if dimensions else None,
            api_base_url=os.getenv("CONDUIT_LLM_API_BASE_URL"),
            api_key=os.getenv("CONDUIT_LLM_API_KEY"),
            timeout_s=float(os.getenv("CONDUIT_LLM_TIMEOUT_S", "30")),
            max_retries=int(os.getenv("CONDUIT_LLM_MAX_RETRIES", "0")),
            backoff_base_s=float(os.getenv("CONDUIT_LLM_BACKOFF_BASE_S", "0.5")),
            backoff_jitter_s=float(os.getenv("CONDUIT_LLM_BACKOFF_JITTER_S", "0")),
            ignored_params=_csv(os.getenv("CONDUIT_LLM_IGNORED_PARAMS", "")),
            reasoning_model_prefixes=_csv(
                os.getenv("CONDUIT_REASONING_MODEL_PREFIXES", "o1,o3")
            ),
            empty_response_as_error=_flag(
                os.getenv("CONDUIT_EMPTY_RESPONSE_AS_ERROR", "false")
            ),
        )
