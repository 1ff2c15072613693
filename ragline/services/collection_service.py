"""Collection lifecycle across the Catalog and the vector-store backend.

A collection exists twice: as a Catalog row and as a same-named collection
in its vector store.  Creation writes the row first (so name uniqueness is
enforced by the Catalog) and rolls it back if the backend refuses.
Deletion removes the row first and treats the backend delete as cleanup:
a failure there is logged and left for :class:`CollectionSync` to report.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog

from ragline.interfaces.catalog_provider import ICatalogProvider
from ragline.interfaces.vector_store_provider import IVectorStoreProvider
from ragline.models.catalog import (
    Collection,
    CollectionCreate,
    CollectionUpdate,
    CollectionWithStore,
    VectorStoreConfig,
)
from ragline.models.rag import CollectionDetail, CopyStats
from ragline.providers.vector_store.factory import create_vector_store
from ragline.services.ingestion.ingestion_pipeline import IngestionPipeline
from ragline.utils.errors import (
    BackendError,
    ConfigurationError,
    NotFoundError,
    RaglineError,
    ValidationError,
)

logger = structlog.get_logger(logger_name=__name__)


class CollectionService:
    """Create, update, inspect and delete collections.

    Parameters
    ----------
    catalog:
        Durable record of stores and collections.
    vector_store_factory:
        Builds an unconnected provider from a :class:`VectorStoreConfig`.
    ingestion_pipeline:
        Moves documents when a collection is copied; copying documents is
        unavailable without it.
    """

    def __init__(
        self,
        catalog: ICatalogProvider,
        vector_store_factory: Callable[[VectorStoreConfig], IVectorStoreProvider] = create_vector_store,
        ingestion_pipeline: IngestionPipeline | None = None,
    ) -> None:
        self._catalog = catalog
        self._vector_store_factory = vector_store_factory
        self._ingestion = ingestion_pipeline

    async def list_collections(self, vector_store_id: int | None = None) -> list[CollectionWithStore]:
        return await self._catalog.list_collections_with_store(vector_store_id)

    async def create_collection(self, data: CollectionCreate) -> Collection:
        """Create the Catalog row and the backend collection.

        Raises
        ------
        NotFoundError
            If the vector store or a referenced default strategy is missing.
        ValidationError
            If the vector store is disabled, or the backend already has a
            collection of that name with other dimensions.
        ConflictError
            If the name is already taken in this store.
        """
        store = await self._require_enabled_store(data.vector_store_id)
        await self._check_strategy_refs(
            data.default_chunking_strategy_id,
            data.default_cleansing_config_id,
            data.default_reranking_strategy_id,
        )

        collection = await self._catalog.create_collection(data)
        backend_metadata = {"catalogId": collection.id}
        if data.description:
            backend_metadata["description"] = data.description
        try:
            async with self._vector_store_factory(store) as vector_store:
                await vector_store.create_collection(
                    collection.name,
                    collection.embedding_dimensions,
                    metadata=backend_metadata,
                )
        except RaglineError:
            await self._catalog.delete_collection(collection.id)
            raise

        logger.info(
            "collection_created",
            collection=collection.name,
            vector_store=store.name,
            dimensions=collection.embedding_dimensions,
        )
        return collection

    async def get_collection(self, collection_id: int) -> CollectionDetail:
        """Return the collection with its document count and backend stats.

        Backend failures do not fail the read; they are reported in
        ``stats_error``.
        """
        collection = await self._catalog.get_collection_with_store(collection_id)
        if collection is None:
            raise NotFoundError(message=f"Collection #{collection_id} not found")

        document_count = await self._catalog.count_documents(collection_id)
        stats = None
        stats_error = None
        store = await self._catalog.get_vector_store(collection.vector_store_id)
        if store is not None and store.enabled:
            try:
                async with self._vector_store_factory(store) as vector_store:
                    stats = await vector_store.get_collection_stats(collection.name)
            except (BackendError, NotFoundError) as exc:
                stats_error = exc.message
                logger.warning(
                    "collection_stats_unavailable",
                    collection=collection.name,
                    error=exc.message,
                )
        else:
            stats_error = "Vector store is disabled"

        return CollectionDetail(
            **collection.model_dump(),
            document_count=document_count,
            stats=stats,
            stats_error=stats_error,
        )

    async def update_collection(self, collection_id: int, data: CollectionUpdate) -> Collection:
        await self._check_strategy_refs(
            data.default_chunking_strategy_id,
            data.default_cleansing_config_id,
            data.default_reranking_strategy_id,
        )
        updated = await self._catalog.update_collection(collection_id, data)
        if updated is None:
            raise NotFoundError(message=f"Collection #{collection_id} not found")
        logger.info("collection_updated", collection=updated.name, fields=sorted(data.model_fields_set))
        return updated

    async def copy_collection(
        self,
        source_id: int,
        name: str,
        copy_documents: bool = True,
        copy_vectors: bool = True,
    ) -> tuple[Collection, CopyStats]:
        """Create *name* with the settings of collection *source_id*.

        The copy uses the same vector store, embedding model and default
        strategies.  With *copy_documents* every document is copied as
        well; *copy_vectors* decides whether processed documents keep
        their embeddings or are processed again.

        Raises
        ------
        NotFoundError
            If the source collection does not exist.
        ConflictError
            If *name* is already taken in the vector store.
        ConfigurationError
            If documents are to be copied but no ingestion pipeline is
            wired in.
        """
        source = await self._catalog.get_collection(source_id)
        if source is None:
            raise NotFoundError(message=f"Collection #{source_id} not found")
        if copy_documents and self._ingestion is None:
            raise ConfigurationError(message="Copying documents needs an ingestion pipeline")

        collection = await self.create_collection(
            CollectionCreate(
                vector_store_id=source.vector_store_id,
                name=name,
                description=f"Copied from {source.name}",
                embedding_model=source.embedding_model,
                embedding_dimensions=source.embedding_dimensions,
                default_chunking_strategy_id=source.default_chunking_strategy_id,
                default_cleansing_config_id=source.default_cleansing_config_id,
                default_reranking_strategy_id=source.default_reranking_strategy_id,
                metadata={**source.metadata, "copiedFrom": source.id},
            )
        )
        stats = CopyStats()
        if copy_documents and self._ingestion is not None:
            stats = await self._ingestion.copy_documents(source, collection, copy_vectors=copy_vectors)

        logger.info(
            "collection_copied",
            source=source.name,
            collection=collection.name,
            documents=stats.documents_copied,
            vectors=stats.vectors_copied,
        )
        return collection, stats

        return updated

    async def delete_collection(self, collection_id: int) -> None:
        """Delete the Catalog row, then the backend collection (best effort).

        Raises
        ------
        NotFoundError
            If the collection does not exist.
        ConflictError
            If documents still belong to the collection.
        """
        collection = await self._catalog.get_collection(collection_id)
        if collection is None:
            raise NotFoundError(message=f"Collection #{collection_id} not found")

        await self._catalog.delete_collection(collection_id)

        store = await self._catalog.get_vector_store(collection.vector_store_id)
        if store is None or not store.enabled:
            logger.warning(
                "collection_backend_delete_skipped",
                collection=collection.name,
                reason="vector store missing or disabled",
            )
            return
        try:
            async with self._vector_store_factory(store) as vector_store:
                await vector_store.delete_collection(collection.name)
        except BackendError as exc:
            logger.warning(
                "collection_backend_delete_failed",
                collection=collection.name,
                error=exc.message,
            )
        logger.info("collection_deleted", collection=collection.name)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_enabled_store(self, store_id: int) -> VectorStoreConfig:
        store = await self._catalog.get_vector_store(store_id)
        if store is None:
            raise NotFoundError(message=f"Vector store #{store_id} not found")
        if not store.enabled:
            raise ValidationError(message=f"Vector store '{store.name}' is disabled")
        return store

    async def _check_strategy_refs(
        self,
        chunking_id: int | None,
        cleansing_id: int | None,
        reranking_id: int | None,
    ) -> None:
        if chunking_id is not None and await self._catalog.get_chunking_strategy(chunking_id) is None:
            raise NotFoundError(message=f"Chunking strategy #{chunking_id} not found")
        if cleansing_id is not None and await self._catalog.get_cleansing_config(cleansing_id) is None:
            raise NotFoundError(message=f"Cleansing config #{cleansing_id} not found")
        if reranking_id is not None and await self._catalog.get_reranking_strategy(reranking_id) is None:
            raise NotFoundError(message=f"Reranking strategy #{reranking_id} not found")
