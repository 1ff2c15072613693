"""Abstract base class for the relational Catalog.

The Catalog holds the durable metadata of the RAG index: vector-store
configs, collections, documents, chunks and the named chunking / cleansing
/ reranking parameter sets.  It offers CRUD by id (and by name where names
are unique) plus a couple of join helpers (collections with their store's
name and type).

Writes addressed to a row that no longer exists are no-ops that report
``False``/``None``; they never recreate the row.  That is what keeps an
orphaned ingestion job from resurrecting a deleted document.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ragline.models.catalog import (
    ChunkingStrategyConfig,
    ChunkingStrategyCreate,
    ChunkingStrategyUpdate,
    CleansingConfig,
    CleansingConfigCreate,
    CleansingConfigUpdate,
    Collection,
    CollectionCreate,
    CollectionUpdate,
    CollectionWithStore,
    Document,
    DocumentChunk,
    DocumentCreate,
    RerankingStrategyConfig,
    RerankingStrategyCreate,
    RerankingStrategyUpdate,
    VectorStoreConfig,
    VectorStoreConfigCreate,
    VectorStoreConfigUpdate,
)


# Concrete implementation: SQLiteCatalogProvider (ragline/providers/catalog/)
class ICatalogProvider(ABC):
    """Contract for Catalog persistence.

    Uniqueness violations raise
    :class:`~ragline.utils.errors.ConflictError`.  Setting ``is_default``
    on a strategy or store clears the flag on every other row of the same
    table (last write wins).
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""

    # ------------------------------------------------------------------
    # Vector stores
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_vector_stores(self) -> list[VectorStoreConfig]: ...

    @abstractmethod
    async def get_vector_store(self, store_id: int) -> VectorStoreConfig | None: ...

    @abstractmethod
    async def create_vector_store(self, data: VectorStoreConfigCreate) -> VectorStoreConfig: ...

    @abstractmethod
    async def update_vector_store(
        self, store_id: int, data: VectorStoreConfigUpdate
    ) -> VectorStoreConfig | None: ...

    @abstractmethod
    async def delete_vector_store(self, store_id: int) -> bool:
        """Delete a store config.

        Raises
        ------
        ragline.utils.errors.ConflictError
            If any collection still references the store.
        """

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_collections(self, vector_store_id: int | None = None) -> list[Collection]: ...

    @abstractmethod
    async def list_collections_with_store(
        self, vector_store_id: int | None = None
    ) -> list[CollectionWithStore]:
        """Return collections joined with store name/type and default strategy names."""

    @abstractmethod
    async def get_collection(self, collection_id: int) -> Collection | None: ...

    @abstractmethod
    async def get_collection_with_store(self, collection_id: int) -> CollectionWithStore | None: ...

    @abstractmethod
    async def get_collection_by_name(self, vector_store_id: int, name: str) -> Collection | None: ...

    @abstractmethod
    async def create_collection(self, data: CollectionCreate) -> Collection: ...

    @abstractmethod
    async def update_collection(
        self, collection_id: int, data: CollectionUpdate
    ) -> Collection | None: ...

    @abstractmethod
    async def delete_collection(self, collection_id: int) -> bool:
        """Delete a collection row.

        Raises
        ------
        ragline.utils.errors.ConflictError
            If documents still belong to the collection.
        """

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_document(self, data: DocumentCreate) -> Document:
        """Insert a document with status ``pending``."""

    @abstractmethod
    async def get_document(self, document_id: int) -> Document | None: ...

    @abstractmethod
    async def list_documents(self, collection_id: int) -> list[Document]: ...

    @abstractmethod
    async def count_documents(self, collection_id: int) -> int: ...

    @abstractmethod
    async def update_document(self, document_id: int, **fields: Any) -> bool:
        """Update columns of a document.

        Accepts ``processing_status``, ``error_message``, ``raw_content``,
        ``metadata``, ``title``.  Returns ``False`` (and writes nothing) if
        the document no longer exists.

        Raises
        ------
        ragline.utils.errors.ConflictError
            If ``processing_status`` is given and the current status may
            not move to it (see :meth:`ProcessingStatus.can_transition_to`).
        """

    @abstractmethod
    async def delete_document(self, document_id: int) -> bool:
        """Delete a document and its chunks."""

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    @abstractmethod
    async def replace_chunks(self, document_id: int, chunks: list[DocumentChunk]) -> bool:
        """Atomically replace every chunk row of a document.

        Returns ``False`` without writing if the document no longer exists.
        """

    @abstractmethod
    async def list_chunks(self, document_id: int) -> list[DocumentChunk]:
        """Return chunks ordered by ``chunk_index``."""

    @abstractmethod
    async def delete_chunks(self, document_id: int) -> int: ...

    # ------------------------------------------------------------------
    # Strategy configs
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_chunking_strategies(self) -> list[ChunkingStrategyConfig]: ...

    @abstractmethod
    async def get_chunking_strategy(self, strategy_id: int) -> ChunkingStrategyConfig | None: ...

    @abstractmethod
    async def get_default_chunking_strategy(self) -> ChunkingStrategyConfig | None: ...

    @abstractmethod
    async def create_chunking_strategy(self, data: ChunkingStrategyCreate) -> ChunkingStrategyConfig: ...

    @abstractmethod
    async def update_chunking_strategy(
        self, strategy_id: int, data: ChunkingStrategyUpdate
    ) -> ChunkingStrategyConfig | None: ...

    @abstractmethod
    async def delete_chunking_strategy(self, strategy_id: int) -> bool: ...

    @abstractmethod
    async def list_cleansing_configs(self) -> list[CleansingConfig]: ...

    @abstractmethod
    async def get_cleansing_config(self, config_id: int) -> CleansingConfig | None: ...

    @abstractmethod
    async def get_default_cleansing_config(self) -> CleansingConfig | None: ...

    @abstractmethod
    async def create_cleansing_config(self, data: CleansingConfigCreate) -> CleansingConfig: ...

    @abstractmethod
    async def update_cleansing_config(
        self, config_id: int, data: CleansingConfigUpdate
    ) -> CleansingConfig | None: ...

    @abstractmethod
    async def delete_cleansing_config(self, config_id: int) -> bool: ...

    @abstractmethod
    async def list_reranking_strategies(self) -> list[RerankingStrategyConfig]: ...

    @abstractmethod
    async def get_reranking_strategy(self, strategy_id: int) -> RerankingStrategyConfig | None: ...

    @abstractmethod
    async def get_default_reranking_strategy(self) -> RerankingStrategyConfig | None: ...

    @abstractmethod
    async def create_reranking_strategy(
        self, data: RerankingStrategyCreate
    ) -> RerankingStrategyConfig: ...

    @abstractmethod
    async def update_reranking_strategy(
        self, strategy_id: int, data: RerankingStrategyUpdate
    ) -> RerankingStrategyConfig | None: ...

    @abstractmethod
    async def delete_reranking_strategy(self, strategy_id: int) -> bool: ...

    @abstractmethod
    async def collections_using_strategy(self, column: str, strategy_id: int) -> list[str]:
        """Return names of collections whose *column* default points at *strategy_id*.

        *column* is one of ``default_chunking_strategy_id``,
        ``default_cleansing_config_id``, ``default_reranking_strategy_id``.
        """

    @abstractmethod
    def get_provider_name(self) -> str: ...
