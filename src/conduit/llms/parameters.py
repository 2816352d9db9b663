from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Canonical chat parameter schema.

Every chat parameter the package understands is declared here with its schema
default and an optional validity check. Adapters layer their own defaults and
ignore-lists on top through `ProviderConfig`.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Mapping

from .errors import LLMConfigurationError, LLMValidationError

Validator = Callable[[Any], "str | None"]

REASONING_EFFORTS = frozenset({"none", "minimal", "low", "medium", "high", "xhigh"})


def _non_negative_number(value: Any) -> str | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        return "must be a number >= 0"
    return None


def _unit_interval(value: Any) -> str | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return "must be a number in (0, 1]"
    if value <= 0 or value > 1:
        return "must be a number in (0, 1]"
    return None


def _positive_int(value: Any) -> str | None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        return "must be an integer >= 1"
    return None


def _top_logprobs(value: Any) -> str | None:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 20:
        return "must be an integer in [0, 20]"
    return None


def _boolean(value: Any) -> str | None:
    return None if isinstance(value, bool) else "must be a boolean"


def _reasoning_effort(value: Any) -> str | None:
    if value not in REASONING_EFFORTS:
        return f"must be one of: {', '.join(sorted(REASONING_EFFORTS))}"
    return None


def _stop(value: Any) -> str | None:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not value:
        return "must be a non-empty list of strings"
    if not all(isinstance(item, str) and item for item in value):
        return "must contain only non-empty strings"
    return None


def _json_object(value: Any) -> str | None:
    return None if isinstance(value, dict) else "must be a JSON object"


@dataclass(frozen=True, slots=True)
class ParameterSpec:
    name: str
    default: Any = None
    validate: Validator | None = None


CHAT_SCHEMA: dict[str, ParameterSpec] = {
    spec.name: spec
    for spec in (
        ParameterSpec("messages"),
        ParameterSpec("model"),
        ParameterSpec("tools"),
        ParameterSpec("tool_choice"),
        ParameterSpec("temperature", validate=_non_negative_number),
        ParameterSpec("top_p", validate=_unit_interval),
        ParameterSpec("n", validate=_positive_int),
        ParameterSpec("logprobs", validate=_boolean),
        ParameterSpec("top_logprobs", validate=_top_logprobs),
        ParameterSpec("response_format", validate=_json_object),
        ParameterSpec("reasoning_effort", validate=_reasoning_effort),
        ParameterSpec("parallel_tool_calls", validate=_boolean),
        ParameterSpec("max_tokens", validate=_positive_int),
        ParameterSpec("stop", validate=_stop),
        ParameterSpec("user"),
        ParameterSpec("metadata", validate=_json_object),
    )
}


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    """Per-adapter parameter defaults and the parameters it never sends."""

    defaults: Mapping[str, Any] = field(default_factory=dict)
    ignored: frozenset[str] = frozenset()

    def with_overrides(
        self,
        *,
        defaults: Mapping[str, Any] | None = None,
        ignored: Iterable[str] = (),
    ) -> "ProviderConfig":
        merged = dict(self.defaults)
        merged.update(defaults or {})
        return replace(self, defaults=merged, ignored=self.ignored | frozenset(ignored))


class ChatParameters:
    """
    Resolves caller parameters against the schema.

    Merge order is schema default, then configured default, then the caller's
    value. Ignored parameters are dropped from the result whatever their source.
    Instances are configured once at client construction and only read after.
    """

    def __init__(self, schema: Mapping[str, ParameterSpec] | None = None) -> None:
        self._schema = dict(schema or CHAT_SCHEMA)
        self._configured: dict[str, Any] = {}
        self._ignored: set[str] = set()

    @classmethod
    def from_provider_config(cls, config: ProviderConfig) -> "ChatParameters":
        params = cls()
        params.update(**{k: v for k, v in config.defaults.items() if v is not None})
        params.ignore(*config.ignored)
        return params

    @property
    def names(self) -> frozenset[str]:
        return frozenset(self._schema)

    @property
    def ignored(self) -> frozenset[str]:
        return frozenset(self._ignored)

    def update(self, **defaults: Any) -> None:
        """Set configured defaults for known parameters."""
        unknown = sorted(set(defaults) - set(self._schema))
        if unknown:
            raise LLMConfigurationError(
                f"Unknown chat parameter(s) in defaults: {', '.join(unknown)}"
            )
        self._configured.update(defaults)

    def ignore(self, *names: str) -> None:
        unknown = sorted(set(names) - set(self._schema))
        if unknown:
            raise LLMConfigurationError(
                f"Cannot ignore unknown chat parameter(s): {', '.join(unknown)}"
            )
        self._ignored.update(names)

    def default_for(self, name: str) -> Any:
        if name in self._configured:
            return self._configured[name]
        spec = self._schema.get(name)
        return spec.default if spec is not None else None

    def to_params(self, supplied: Mapping[str, Any]) -> tuple[dict[str, Any], list[str]]:
        """
        Merge `supplied` over defaults.

        Returns the merged parameters and the caller-supplied names that were
        dropped because the adapter ignores them.
        """
        unknown = sorted(set(supplied) - set(self._schema))
        if unknown:
            raise LLMValidationError(
                f"Unknown chat parameter(s): {', '.join(unknown)}",
                param=unknown[0],
            )

        params: dict[str, Any] = {}
        dropped: list[str] = []
        for name in self._schema:
            value = supplied.get(name)
            if value is None:
                value = self.default_for(name)
            elif name in self._ignored:
                dropped.append(name)
                continue

            if value is None or name in self._ignored:
                continue
            params[name] = value
        return params, dropped

    def validate(self, params: Mapping[str, Any]) -> None:
        for name, value in params.items():
            spec = self._schema.get(name)
            if spec is None or spec.validate is None:
                continue
            problem = spec.validate(value)
            if problem:
                raise LLMValidationError(f"{name} {problem}", param=name)
