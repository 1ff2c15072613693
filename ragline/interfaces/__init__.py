"""Abstract contracts for every backend ragline talks to.

Concrete adapters live in ``ragline/providers/`` and are wired together in
``ragline/main.py``; services only ever see these interfaces, which lets
tests inject fakes.

    Interface              ->  Concrete implementations
    ------------------------------------------------------------
    IEmbeddingProvider     ->  OpenAIEmbeddingProvider, OllamaEmbeddingProvider
    ILLMProvider           ->  OpenAILLMProvider, OllamaLLMProvider
    IVectorStoreProvider   ->  ChromaDBProvider, InMemoryVectorStoreProvider
    ICatalogProvider       ->  SQLiteCatalogProvider
"""

from ragline.interfaces.catalog_provider import ICatalogProvider
from ragline.interfaces.embedding_provider import IEmbeddingProvider
from ragline.interfaces.llm_provider import ILLMProvider
from ragline.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "ICatalogProvider",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IVectorStoreProvider",
]
