"""Provider adapter implementations."""

from .mistral import MistralAIClient
from .openai import OpenAIClient, OpenAIResponsesClient

__all__ = [
    "OpenAIClient",
    "OpenAIResponsesClient",
    "MistralAIClient",
]
