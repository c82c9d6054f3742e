"""
LLM Manager for handling different language model providers.
"""

import logging
import os
import re
from typing import Dict, Any, List, Optional
from abc import ABC, abstractmethod
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class LLMProviderError(Exception):
    """Raised when a provider cannot produce generated text."""


def resolve_env_vars(value: str) -> str:
    """Resolve environment variables in string values like ${VAR_NAME}."""
    if isinstance(value, str) and "${" in value:
        # Replace ${VAR_NAME} with environment variable value
        def replace_env_var(match):
            var_name = match.group(1)
            return os.getenv(var_name, match.group(0))

        return re.sub(r'\$\{([^}]+)\}', replace_env_var, value)
    return value


@dataclass
class LLMConfig:
    """Configuration for LLM providers."""
    provider: str
    model: str
    temperature: float = 0.3
    max_tokens: int = 1000
    api_key: Optional[str] = None

    def __post_init__(self):
        """Resolve environment variables after initialization."""
        if self.api_key:
            self.api_key = resolve_env_vars(self.api_key)
            # An unresolved reference means the variable is not set
            if "${" in self.api_key:
                self.api_key = None


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def generate(self, prompt: str, system_prompt: Optional[str] = None, **kwargs) -> str:
        """Generate text using the LLM."""
        pass


class OpenAIProvider(LLMProvider):
    """OpenAI provider implementation."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self.api_key = config.api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            raise LLMProviderError("OpenAI API key not found")

        from openai import AsyncOpenAI
        self.client = AsyncOpenAI(api_key=self.api_key)

    async def generate(self, prompt: str, system_prompt: Optional[str] = None, **kwargs) -> str:
        """Generate text using OpenAI."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self.client.chat.completions.create(
                model=self.config.model,
                messages=messages,
                max_tokens=kwargs.get("max_tokens", self.config.max_tokens),
                temperature=kwargs.get("temperature", self.config.temperature)
            )
        except Exception as e:
            logger.error(f"OpenAI generation error: {e}")
            raise LLMProviderError(f"OpenAI generation failed: {e}") from e
        return response.choices[0].message.content


class AnthropicProvider(LLMProvider):
    """Anthropic provider implementation."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self.api_key = config.api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise LLMProviderError("Anthropic API key not found")

        import anthropic
        self.client = anthropic.AsyncAnthropic(api_key=self.api_key)

    async def generate(self, prompt: str, system_prompt: Optional[str] = None, **kwargs) -> str:
        """Generate text using Anthropic."""
        params = {
            "model": self.config.model,
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
            "temperature": kwargs.get("temperature", self.config.temperature),
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            params["system"] = system_prompt

        try:
            response = await self.client.messages.create(**params)
        except Exception as e:
            logger.error(f"Anthropic generation error: {e}")
            raise LLMProviderError(f"Anthropic generation failed: {e}") from e
        return response.content[0].text if response.content else ""


class GeminiProvider(LLMProvider):
    """Google Gemini provider implementation."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self.api_key = config.api_key or os.getenv("GEMINI_API_KEY")
        if not self.api_key:
            raise LLMProviderError("Gemini API key not found")

        from google import genai
        self.client = genai.Client(api_key=self.api_key)

    async def generate(self, prompt: str, system_prompt: Optional[str] = None, **kwargs) -> str:
        """Generate text using Gemini."""
        from google.genai import types

        try:
            response = await self.client.aio.models.generate_content(
                model=self.config.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system_prompt,
                    temperature=kwargs.get("temperature", self.config.temperature),
                    max_output_tokens=kwargs.get("max_tokens", self.config.max_tokens),
                ),
            )
        except Exception as e:
            logger.error(f"Gemini generation error: {e}")
            raise LLMProviderError(f"Gemini generation failed: {e}") from e
        return response.text


PROVIDER_CLASSES = {
    "openai": (OpenAIProvider, "gpt-4o-mini"),
    "anthropic": (AnthropicProvider, "claude-3-5-haiku-latest"),
    "gemini": (GeminiProvider, "gemini-2.5-flash"),
}


class LLMManager:
    """Manager for handling different LLM providers."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.providers: Dict[str, LLMProvider] = {}
        self._initialize_providers()

    def _initialize_providers(self):
        """Initialize every configured provider whose credentials resolve."""
        llm_config = self.config.get("llm", {})

        for name, (provider_class, default_model) in PROVIDER_CLASSES.items():
            if name not in llm_config:
                continue
            provider_config = llm_config[name] or {}
            config = LLMConfig(
                provider=name,
                model=provider_config.get("model", default_model),
                temperature=provider_config.get("temperature", 0.3),
                max_tokens=provider_config.get("max_tokens", 1000),
                api_key=provider_config.get("api_key")
            )
            try:
                self.providers[name] = provider_class(config)
                logger.info(f"{name} provider initialized")
            except (LLMProviderError, ImportError) as e:
                logger.warning(f"Failed to initialize {name} provider: {e}")

        if not self.providers:
            logger.warning("No LLM providers available - responses will use the fallback template")

    def _resolve_provider(self, provider: Optional[str]) -> LLMProvider:
        if not self.providers:
            raise LLMProviderError("No LLM provider available")

        llm_config = self.config.get("llm", {})
        provider_name = provider or llm_config.get("default_provider")
        if provider is None and provider_name not in self.providers:
            provider_name = next(iter(self.providers))

        if provider_name not in self.providers:
            raise LLMProviderError(f"Provider {provider_name} not available")

        return self.providers[provider_name]

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        provider: Optional[str] = None,
        **kwargs
    ) -> str:
        """Generate text using specified or default provider."""
        text = await self._resolve_provider(provider).generate(prompt, system_prompt=system_prompt, **kwargs)
        if not text or not text.strip():
            raise LLMProviderError("Empty response from provider")
        return text

    def get_available_providers(self) -> List[str]:
        """Get list of available providers."""
        return list(self.providers.keys())
