"""OpenAI provider."""

from providers.openai.provider import OpenAIProvider

__all__ = ["OpenAIProvider"]
