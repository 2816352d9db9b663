"""Reusable adapter base classes."""

from .completions import ChatCompletionsClientBase
from .responses import ResponsesClientBase

__all__ = [
    "ChatCompletionsClientBase",
    "ResponsesClientBase",
]
