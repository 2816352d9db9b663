from __future__ import annotations

"""
Factory utilities for constructing concrete LLM adapters.
"""

from dataclasses import replace
from typing import TYPE_CHECKING, Any, Callable, Iterable

from .config import LLMConfig
from .errors import LLMConfigurationError
from .observability import LLMObserver

if TYPE_CHECKING:
    from .llm import LLM


AdapterFactory = Callable[..., "LLM"]
_BUILTIN_ADAPTERS = {"openai", "openai_responses", "mistral"}
_REGISTRY: dict[str, AdapterFactory] = {}


def register_llm_adapter(
    name: str,
    factory: AdapterFactory,
    *,
    overwrite: bool = False,
) -> None:
    """
    Register a custom adapter factory by name.

    The factory is called with the same keyword arguments as an adapter
    constructor (`config`, `observers`, `transport`, `http_client`, `sleep`).
    """
    key = name.strip().lower()
    if not key:
        raise LLMConfigurationError("Adapter name must be non-empty")

    if (not overwrite) and (key in _REGISTRY or key in _BUILTIN_ADAPTERS):
        raise LLMConfigurationError(f"Adapter already registered: {key}")

    _REGISTRY[key] = factory


def available_llm_adapters() -> list[str]:
    """Return built-in and runtime-registered adapter names."""
    return sorted(set(_BUILTIN_ADAPTERS) | set(_REGISTRY.keys()))


def create_llm(
    adapter: str | None = None,
    *,
    config: LLMConfig | None = None,
    observers: Iterable[LLMObserver] | None = None,
    **kwargs: Any,
) -> "LLM":
    """
    Create an LLM client instance for a specific adapter key.

    `adapter` defaults to `config.adapter`. The `openai` key resolves to the
    Responses API client when `config.use_responses_api` is set.
    """
    cfg = config or LLMConfig.from_env()
    key = (adapter if adapter is not None else cfg.adapter).strip().lower()
    if not key:
        raise LLMConfigurationError("Adapter name must be non-empty")

    if key != cfg.adapter:
        cfg = replace(cfg, adapter=key)

    factory = _REGISTRY.get(key) or _builtin_factory(key, cfg)
    return factory(config=cfg, observers=observers, **kwargs)


def create_llm_from_env(
    *,
    config: LLMConfig | None = None,
    observers: Iterable[LLMObserver] | None = None,
    **kwargs: Any,
) -> "LLM":
    """Create an LLM client using `CONDUIT_LLM_ADAPTER` (defaults to `openai`)."""
    cfg = config or LLMConfig.from_env()
    return create_llm(cfg.adapter, config=cfg, observers=observers, **kwargs)


def _builtin_factory(adapter: str, config: LLMConfig) -> AdapterFactory:
    """Resolve built-in adapter classes lazily to avoid import cycles."""
    if adapter == "openai":
        from .clients.adapters.openai import OpenAIClient, OpenAIResponsesClient

        return OpenAIResponsesClient if config.use_responses_api else OpenAIClient

    if adapter == "openai_responses":
        from .clients.adapters.openai import OpenAIResponsesClient

        return OpenAIResponsesClient

    if adapter == "mistral":
        from .clients.adapters.mistral import MistralAIClient

        return MistralAIClient

    raise LLMConfigurationError(
        f"Unknown LLM adapter '{adapter}'. Available: {', '.join(available_llm_adapters())}"
    )
