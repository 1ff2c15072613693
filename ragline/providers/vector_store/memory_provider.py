"""In-process vector store backed by numpy.

Collections live in a module-level registry keyed by connection string, so
two provider instances built from the same
:class:`~ragline.models.catalog.VectorStoreConfig` see the same data for
the lifetime of the process.  Nothing is persisted.

Used for local development and tests, and as the reference behaviour of
the :class:`IVectorStoreProvider` contract.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
import structlog

from ragline.interfaces.vector_store_provider import IVectorStoreProvider
from ragline.models.rag import CollectionInfo, CollectionStats, SearchResult, VectorDocument
from ragline.utils.errors import NotFoundError, ValidationError, VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_NAMESPACE = "default"


@dataclass
class _MemoryCollection:
    dimensions: int
    metadata: dict[str, Any] = field(default_factory=dict)
    entries: dict[str, VectorDocument] = field(default_factory=dict)


# connection string -> collection name -> collection
_REGISTRY: dict[str, dict[str, _MemoryCollection]] = {}


def _matches(doc: VectorDocument, filter: dict[str, Any]) -> bool:
    return all(doc.metadata.get(key) == value for key, value in filter.items())


class InMemoryVectorStoreProvider(IVectorStoreProvider):
    """Cosine-similarity search over numpy arrays held in memory."""

    def __init__(self, connection_string: str | None = None) -> None:
        self._namespace = connection_string or _DEFAULT_NAMESPACE
        self._collections: dict[str, _MemoryCollection] | None = None

    @classmethod
    def reset(cls, connection_string: str | None = None) -> None:
        """Forget every collection, or only those under *connection_string*."""
        if connection_string is None:
            _REGISTRY.clear()
        else:
            _REGISTRY.pop(connection_string, None)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        self._collections = _REGISTRY.setdefault(self._namespace, {})

    async def disconnect(self) -> None:
        self._collections = None

    def _store(self) -> dict[str, _MemoryCollection]:
        if self._collections is None:
            raise VectorStoreError(
                message="In-memory store is not connected",
                provider_name=self.get_provider_name(),
            )
        return self._collections

    def _get(self, name: str) -> _MemoryCollection:
        collection = self._store().get(name)
        if collection is None:
            raise NotFoundError(
                message=f"Collection '{name}' not found",
                provider_name=self.get_provider_name(),
            )
        return collection

    # ------------------------------------------------------------------
    # Collection lifecycle
    # ------------------------------------------------------------------

    async def create_collection(
        self,
        name: str,
        dimensions: int,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.validate_collection_name(name)
        self.validate_dimensions(dimensions)
        store = self._store()
        existing = store.get(name)
        if existing is not None:
            if existing.dimensions != dimensions:
                raise ValidationError(
                    message=(
                        f"Collection '{name}' already exists with {existing.dimensions} "
                        f"dimensions (requested {dimensions})"
                    ),
                    provider_name=self.get_provider_name(),
                )
            return
        store[name] = _MemoryCollection(dimensions=dimensions, metadata=dict(metadata or {}))
        logger.info("memory_collection_created", collection=name, dimensions=dimensions)

    async def list_collections(self) -> list[CollectionInfo]:
        return [self._to_info(name, c) for name, c in self._store().items()]

    async def get_collection(self, name: str) -> CollectionInfo | None:
        collection = self._store().get(name)
        return self._to_info(name, collection) if collection else None

    async def delete_collection(self, name: str) -> None:
        self._store().pop(name, None)

    @staticmethod
    def _to_info(name: str, collection: _MemoryCollection) -> CollectionInfo:
        metadata = dict(collection.metadata)
        description = metadata.pop("description", None)
        metadata["dimensions"] = collection.dimensions
        return CollectionInfo(name=name, description=description, metadata=metadata)

    # ------------------------------------------------------------------
    # Document CRUD
    # ------------------------------------------------------------------

    async def add_documents(self, collection_name: str, documents: list[VectorDocument]) -> None:
        collection = self._get(collection_name)
        for doc in documents:
            if len(doc.embedding) != collection.dimensions:
                raise ValidationError(
                    message=(
                        f"Vector for '{doc.id}' has {len(doc.embedding)} dimensions, "
                        f"collection '{collection_name}' expects {collection.dimensions}"
                    ),
                    provider_name=self.get_provider_name(),
                )
        for doc in documents:
            collection.entries[doc.id] = doc

    async def update_documents(self, collection_name: str, documents: list[VectorDocument]) -> None:
        await self.add_documents(collection_name, documents)

    async def delete_documents(self, collection_name: str, ids: list[str]) -> None:
        collection = self._get(collection_name)
        for doc_id in ids:
            collection.entries.pop(doc_id, None)

    async def delete_by_filter(self, collection_name: str, filter: dict[str, Any]) -> None:
        self.validate_filter(filter)
        collection = self._get(collection_name)
        doomed = [doc_id for doc_id, doc in collection.entries.items() if _matches(doc, filter)]
        for doc_id in doomed:
            del collection.entries[doc_id]
        if doomed:
            logger.debug("memory_delete_by_filter", collection=collection_name, count=len(doomed))

    async def get_document(self, collection_name: str, document_id: str) -> VectorDocument | None:
        return self._get(collection_name).entries.get(document_id)

    async def search(
        self,
        collection_name: str,
        query_vector: list[float],
        k: int = 10,
        filter: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        collection = self._get(collection_name)
        self.validate_query_vector(query_vector, collection.dimensions)
        candidates = [
            doc for doc in collection.entries.values() if not filter or _matches(doc, filter)
        ]
        if not candidates or k <= 0:
            return []

        matrix = np.asarray([doc.embedding for doc in candidates], dtype=np.float64)
        query = np.asarray(query_vector, dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)

        # Stable sort keeps insertion order between equal scores.
        order = np.argsort(-scores, kind="stable")[:k]
        return [
            SearchResult(
                id=candidates[i].id,
                content=candidates[i].content,
                score=float(scores[i]),
                metadata=dict(candidates[i].metadata),
            )
            for i in order
        ]

    async def get_collection_stats(self, collection_name: str) -> CollectionStats:
        collection = self._get(collection_name)
        return CollectionStats(
            document_count=len(collection.entries),
            dimensions=collection.dimensions,
            index_type="flat:cosine",
        )

    def get_provider_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return self._collections is not None
