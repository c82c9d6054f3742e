"""
LLM Provider implementations for the MedGraph support system.
"""

from .llm_manager import OpenAIProvider, AnthropicProvider, GeminiProvider

__all__ = ["OpenAIProvider", "AnthropicProvider", "GeminiProvider"]
