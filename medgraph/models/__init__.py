"""
LLM abstraction layer for the MedGraph support system.
"""

from .llm_manager import LLMManager, LLMConfig, LLMProviderError
from .providers import OpenAIProvider, AnthropicProvider, GeminiProvider

__all__ = [
    "LLMManager",
    "LLMConfig",
    "LLMProviderError",
    "OpenAIProvider",
    "AnthropicProvider",
    "GeminiProvider",
]
