"""LLM client package.

Structure:
- `adapters/`: provider-specific adapter implementations
- `base/`: reusable adapter base classes
- `shared/`: reusable wire parsing/mapping utilities
"""

from .adapters import MistralAIClient, OpenAIClient, OpenAIResponsesClient
from .base import ChatCompletionsClientBase, ResponsesClientBase

__all__ = [
    "ChatCompletionsClientBase",
    "ResponsesClientBase",
    "OpenAIClient",
    "OpenAIResponsesClient",
    "MistralAIClient",
]
