"""Query path: embed the query, search the collection, enrich, rerank."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from ragline.interfaces.catalog_provider import ICatalogProvider
from ragline.interfaces.embedding_provider import IEmbeddingProvider
from ragline.interfaces.vector_store_provider import IVectorStoreProvider
from ragline.models.catalog import USE_COLLECTION_DEFAULT, Document, VectorStoreConfig
from ragline.models.rag import RerankCandidate, SearchResult
from ragline.providers.vector_store.factory import create_vector_store
from ragline.services.reranking_service import RerankingService
from ragline.utils.errors import NotFoundError, ValidationError

logger = structlog.get_logger(logger_name=__name__)


class SearchService:
    """Similarity search over one collection with optional reranking.

    Parameters
    ----------
    catalog:
        Resolves collections, stores and the documents behind each hit.
    embedding_provider_factory:
        Called with the collection's ``embedding_model``; the query must be
        embedded with the same model as the stored chunks.
    reranking_service:
        Applied after the vector search.
    vector_store_factory:
        Builds an unconnected provider from a :class:`VectorStoreConfig`.
    default_top_k:
        Number of hits when the caller does not say.
    """

    def __init__(
        self,
        catalog: ICatalogProvider,
        embedding_provider_factory: Callable[[str], IEmbeddingProvider],
        reranking_service: RerankingService,
        vector_store_factory: Callable[[VectorStoreConfig], IVectorStoreProvider] = create_vector_store,
        default_top_k: int = 10,
    ) -> None:
        self._catalog = catalog
        self._embedding_provider_factory = embedding_provider_factory
        self._reranking = reranking_service
        self._vector_store_factory = vector_store_factory
        self._default_top_k = default_top_k

    async def search(
        self,
        collection_id: int,
        query: str,
        top_k: int | None = None,
        filter: dict[str, Any] | None = None,
        reranking_strategy_id: int | str | None = None,
    ) -> list[RerankCandidate]:
        """Return the best chunks for *query*, best first.

        ``reranking_strategy_id`` may be a strategy id, ``"default"`` for
        the collection's default strategy, or ``None`` for no reranking.

        Raises
        ------
        NotFoundError
            If the collection or the reranking strategy does not exist.
        ValidationError
            If the query is blank, or the collection or its store is not
            usable.
        """
        if not query or not query.strip():
            raise ValidationError(message="Query must not be empty")
        k = top_k if top_k is not None else self._default_top_k
        if k <= 0:
            raise ValidationError(message="top_k must be positive")

        collection = await self._catalog.get_collection(collection_id)
        if collection is None:
            raise NotFoundError(message=f"Collection #{collection_id} not found")
        if not collection.is_active:
            raise ValidationError(message=f"Collection '{collection.name}' is inactive")
        store = await self._catalog.get_vector_store(collection.vector_store_id)
        if store is None or not store.enabled:
            raise ValidationError(
                message=f"Vector store #{collection.vector_store_id} is missing or disabled"
            )

        if reranking_strategy_id == USE_COLLECTION_DEFAULT:
            reranking_strategy_id = collection.default_reranking_strategy_id
        elif isinstance(reranking_strategy_id, str):
            raise ValidationError(
                message=f"Unknown reranking strategy reference: {reranking_strategy_id!r}"
            )

        embedder = self._embedding_provider_factory(collection.embedding_model)
        query_vector = await embedder.embed_single(query)

        async with self._vector_store_factory(store) as vector_store:
            hits = await vector_store.search(collection.name, query_vector, k=k, filter=filter)

        candidates = await self._enrich(hits)
        ranked = await self._reranking.rerank_with_strategy(
            query,
            candidates,
            reranking_strategy_id if isinstance(reranking_strategy_id, int) else None,
        )
        logger.info(
            "search_complete",
            collection=collection.name,
            hits=len(hits),
            returned=len(ranked),
            reranking_strategy_id=reranking_strategy_id,
        )
        return ranked

    async def _enrich(self, hits: list[SearchResult]) -> list[RerankCandidate]:
        """Attach document title, filename and type; drop hits of deleted documents."""
        documents: dict[int, Document | None] = {}
        candidates: list[RerankCandidate] = []
        for hit in hits:
            document_id = hit.metadata.get("documentId")
            metadata = dict(hit.metadata)
            if isinstance(document_id, int):
                if document_id not in documents:
                    documents[document_id] = await self._catalog.get_document(document_id)
                document = documents[document_id]
                if document is None:
                    logger.debug("search_hit_orphaned", vector_id=hit.id, document_id=document_id)
                    continue
                metadata.update(
                    documentTitle=document.title,
                    filename=document.filename,
                    contentType=document.content_type,
                )
            candidates.append(
                RerankCandidate(id=hit.id, content=hit.content, score=hit.score, metadata=metadata)
            )
        return candidates
