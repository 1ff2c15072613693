"""Pick an LLM provider from settings."""

from __future__ import annotations

from ragline.config.settings import Settings
from ragline.interfaces.llm_provider import ILLMProvider
from ragline.providers.llm.ollama_provider import OllamaLLMProvider
from ragline.providers.llm.openai_provider import OpenAILLMProvider
from ragline.utils.errors import ConfigurationError


def create_llm_provider(settings: Settings, model: str | None = None) -> ILLMProvider:
    """Return the provider named by ``settings.llm_provider`` bound to *model*."""
    name = settings.llm_provider.lower()
    if name == "openai":
        return OpenAILLMProvider(settings, model=model)
    if name == "ollama":
        return OllamaLLMProvider(settings, model=model)
    raise ConfigurationError(
        message=f"Unknown LLM provider: {settings.llm_provider}",
        provider_name="llm_factory",
    )
