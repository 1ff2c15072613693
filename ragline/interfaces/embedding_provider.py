"""Abstract base class for text-embedding service providers.

Defines the contract for generating embedding vectors from text.
Implementations wrap an OpenAI-compatible embeddings API or a local
Ollama server; the rest of the code only sees this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider  : text-embedding-3-small et al. (API key)
#   OllamaEmbeddingProvider  : nomic-embed-text et al. via Ollama (local)
# Located in: ragline/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services.

    Embeddings are written to an
    :class:`~ragline.interfaces.vector_store_provider.IVectorStoreProvider`
    during ingestion and used for query-time similarity search.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.  Implementations batch
            internally if the underlying API has a per-call limit.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.  The
            order is stable regardless of internal batching.

        Raises
        ------
        ragline.utils.errors.EmbeddingError
            If the embedding API call fails (auth, rate limit, network).
        """

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string.

        Convenience wrapper around :meth:`embed` for query embedding.
        """
        result = await self.embed([text])
        return result[0]

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Example values: ``1536`` (``text-embedding-3-small``),
        ``768`` (``nomic-embed-text``).
        """

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the embedding model identifier sent to the backend."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Checks credentials or endpoint configuration without generating an
        embedding.
        """
