from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Module for structured llm outputs.

A pydantic model passed as `response_model` is turned into a json_schema
`response_format`; the completion text is then validated back into it.
"""
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import LLMInvalidResponseError
from .utils import safe_json_loads, strip_code_fence

T = TypeVar("T", bound=BaseModel)


def response_format_for(schema: type[BaseModel]) -> dict[str, Any]:
    """Chat-completions `response_format` requesting strict JSON for `schema`."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": schema.__name__,
            "schema": schema.model_json_schema(),
            "strict": True,
        },
    }


def parse_and_validate_json(text: str | None, schema: type[T]) -> T:
    if not text:
        raise LLMInvalidResponseError("Structured output requested but the response had no text")

    obj = safe_json_loads(strip_code_fence(text))
    if obj is None:
        raise LLMInvalidResponseError(
            f"Failed to extract valid JSON object from response: {text}"
        )
    try:
        return schema.model_validate(obj)
    except ValidationError as e:
        raise LLMInvalidResponseError(
            f"JSON does not conform to schema: {e}\nOriginal response: {text}"
        ) from e
