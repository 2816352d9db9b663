"""Shared client helper utilities."""

from .normalization import (
    chat_message_to_wire,
    extract_choices,
    extract_embeddings,
    extract_tool_call_deltas,
    extract_tool_calls,
    extract_usage,
    to_plain_dict,
)

__all__ = [
    "to_plain_dict",
    "extract_usage",
    "extract_tool_calls",
    "extract_tool_call_deltas",
    "extract_choices",
    "extract_embeddings",
    "chat_message_to_wire",
]
