"""Pick an embedding provider from settings."""

from __future__ import annotations

from ragline.config.settings import Settings
from ragline.interfaces.embedding_provider import IEmbeddingProvider
from ragline.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from ragline.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from ragline.utils.errors import ConfigurationError


def create_embedding_provider(settings: Settings, model: str | None = None) -> IEmbeddingProvider:
    """Return the provider named by ``settings.embedding_provider`` for *model*.

    Raises
    ------
    ragline.utils.errors.ConfigurationError
        If the provider name is unknown.
    """
    name = settings.embedding_provider.lower()
    if name == "openai":
        return OpenAIEmbeddingProvider(settings, model=model)
    if name == "ollama":
        return OllamaEmbeddingProvider(settings, model=model)
    raise ConfigurationError(
        message=f"Unknown embedding provider: {settings.embedding_provider}",
        provider_name="embedding_factory",
    )
