"""Vector store provider implementations.

    - ChromaDBProvider            - ChromaDB server (http) or local persistence
    - InMemoryVectorStoreProvider - numpy cosine search, process lifetime only

To add another backend, implement IVectorStoreProvider, add a member to
VectorStoreType and register it in ``factory.create_vector_store``.
The chromadb provider is imported lazily by the factory.
"""

from ragline.providers.vector_store.factory import create_vector_store
from ragline.providers.vector_store.memory_provider import InMemoryVectorStoreProvider

__all__ = ["InMemoryVectorStoreProvider", "create_vector_store"]
