"""Vector-store factory keyed on the ``type`` discriminator of a store config."""

from __future__ import annotations

from ragline.interfaces.vector_store_provider import IVectorStoreProvider
from ragline.models.catalog import VectorStoreConfig, VectorStoreConfigCreate, VectorStoreType
from ragline.utils.errors import ValidationError


def create_vector_store(
    config: VectorStoreConfig | VectorStoreConfigCreate,
) -> IVectorStoreProvider:
    """Return an unconnected provider for *config*.

    Use the result as an async context manager so the client is released
    after the operation::

        async with create_vector_store(config) as store:
            await store.search("kb", vector, k=5)

    Raises
    ------
    ragline.utils.errors.ValidationError
        If ``config.type`` names no known backend.
    """
    store_type = config.type.value if isinstance(config.type, VectorStoreType) else str(config.type)

    if store_type == VectorStoreType.CHROMADB.value:
        # Imported lazily so chromadb's startup cost is only paid when used.
        from ragline.providers.vector_store.chromadb_provider import ChromaDBProvider

        return ChromaDBProvider(
            connection_string=config.connection_string,
            api_key=config.api_key,
            settings=config.settings,
        )
    if store_type == VectorStoreType.MEMORY.value:
        from ragline.providers.vector_store.memory_provider import InMemoryVectorStoreProvider

        return InMemoryVectorStoreProvider(connection_string=config.connection_string)
    if store_type == VectorStoreType.FAISS.value:
        from ragline.providers.vector_store.faiss_provider import FaissVectorStoreProvider

        return FaissVectorStoreProvider(connection_string=config.connection_string)

    raise ValidationError(
        message=f"Unsupported vector store type: {store_type}",
        provider_name="vector_store_factory",
    )
