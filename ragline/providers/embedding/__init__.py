"""Embedding provider implementations.

Embeddings convert chunk text into vectors that are stored in a vector
store and compared at query time.

    - OpenAIEmbeddingProvider - text-embedding-3-small (1536 dims) et al.
    - OllamaEmbeddingProvider - nomic-embed-text (768 dims) via a local Ollama

``create_embedding_provider`` picks one from ``Settings.embedding_provider``
and binds it to a collection's embedding model.
"""

from ragline.providers.embedding.factory import create_embedding_provider
from ragline.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from ragline.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OllamaEmbeddingProvider", "OpenAIEmbeddingProvider", "create_embedding_provider"]
