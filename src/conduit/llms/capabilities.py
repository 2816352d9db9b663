from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Model-family capability rules.

Reasoning models (o1/o3 families) accept only the default sampling temperature
and reject `parallel_tool_calls` outright, even when it is set to a default
value. They are also unavailable through the responses-style API.
"""

import logging
from typing import Any, Iterable, Mapping

from .errors import LLMCapabilityConflictError

logger = logging.getLogger(__name__)

DEFAULT_REASONING_MODEL_PREFIXES: tuple[str, ...] = ("o1", "o3")
REASONING_TEMPERATURE = 1
REASONING_UNSUPPORTED_PARAMS: tuple[str, ...] = ("parallel_tool_calls",)


def is_reasoning_model(
    model: str | None,
    prefixes: Iterable[str] = DEFAULT_REASONING_MODEL_PREFIXES,
) -> bool:
    if not isinstance(model, str) or not model:
        return False
    return model.startswith(tuple(prefixes))


def ensure_api_mode_supported(
    model: str | None,
    *,
    use_responses_api: bool,
    prefixes: Iterable[str] = DEFAULT_REASONING_MODEL_PREFIXES,
) -> None:
    """Reject model/API combinations that can never succeed."""
    if use_responses_api and is_reasoning_model(model, prefixes):
        raise LLMCapabilityConflictError(
            f"Model '{model}' is a reasoning model and is not supported by the "
            "responses API. Use the chat completions API for reasoning models."
        )


def apply_reasoning_constraints(
    params: Mapping[str, Any],
    *,
    prefixes: Iterable[str] = DEFAULT_REASONING_MODEL_PREFIXES,
) -> dict[str, Any]:
    """Return a copy of `params` adjusted for the model's family."""
    out = dict(params)
    model = out.get("model")
    if not is_reasoning_model(model, prefixes):
        return out

    temperature = out.get("temperature")
    if temperature is not None and temperature != REASONING_TEMPERATURE:
        logger.info(
            "Forcing temperature=%s for reasoning model %s (was %s)",
            REASONING_TEMPERATURE,
            model,
            temperature,
        )
    out["temperature"] = REASONING_TEMPERATURE

    for name in REASONING_UNSUPPORTED_PARAMS:
        if name in out:
            logger.info("Removing unsupported '%s' for reasoning model %s", name, model)
            del out[name]

    return out
