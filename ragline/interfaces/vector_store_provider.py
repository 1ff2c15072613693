"""Abstract base class for vector-store backends.

Defines the contract for collection lifecycle, chunk upsert/delete and
similarity search.  One concrete class exists per backend type and
:func:`~ragline.providers.vector_store.factory.create_vector_store` picks
one from a :class:`~ragline.models.catalog.VectorStoreConfig`.

Clients are acquired per logical operation and always released::

    async with create_vector_store(config) as store:
        await store.add_documents("kb", docs)

``__aenter__`` connects and ``__aexit__`` disconnects, even on error.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from types import TracebackType
from typing import Any

from ragline.models.rag import CollectionInfo, CollectionStats, SearchResult, VectorDocument
from ragline.utils.errors import ValidationError

_COLLECTION_NAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")

_DEFAULT_BATCH_SIZE = 100


# Concrete implementations: ChromaDBProvider, FaissVectorStoreProvider,
# InMemoryVectorStoreProvider
# Located in: ragline/providers/vector_store/
class IVectorStoreProvider(ABC):
    """Contract for vector-store services used by the ingestion and search paths.

    Every method except the name/availability helpers is async so
    network-backed stores never block the event loop.  Every data method
    is scoped to a named collection.
    """

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def connect(self) -> None:
        """Open the backend client.  Called by ``__aenter__``."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Release backend resources.  Safe to call more than once."""

    async def __aenter__(self) -> IVectorStoreProvider:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.disconnect()

    # ------------------------------------------------------------------
    # Collection lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_collection(
        self,
        name: str,
        dimensions: int,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Create a collection for *dimensions*-long vectors.

        Parameters
        ----------
        name:
            Collection name; must match ``^[a-zA-Z0-9_-]+$``.
        dimensions:
            Vector length; positive.
        metadata:
            Optional free-form metadata stored with the collection.

        Raises
        ------
        ragline.utils.errors.ValidationError
            If the name or dimensions are invalid, or a same-named
            collection already exists with different dimensions.  An
            existing collection with the same dimensions is left as is.
        ragline.utils.errors.VectorStoreError
            If the backend call fails.
        """

    @abstractmethod
    async def list_collections(self) -> list[CollectionInfo]:
        """Return every collection visible to the configured credentials."""

    @abstractmethod
    async def get_collection(self, name: str) -> CollectionInfo | None:
        """Return one collection, or ``None`` if it does not exist."""

    @abstractmethod
    async def delete_collection(self, name: str) -> None:
        """Delete a collection and all of its vectors.

        Idempotent: deleting an absent collection is not an error.
        """

    # ------------------------------------------------------------------
    # Document CRUD
    # ------------------------------------------------------------------

    @abstractmethod
    async def add_documents(self, collection_name: str, documents: list[VectorDocument]) -> None:
        """Upsert *documents* by id.

        Re-adding an existing id overwrites it; ids never duplicate.

        Raises
        ------
        ragline.utils.errors.NotFoundError
            If the collection does not exist.
        ragline.utils.errors.ValidationError
            If a vector's length differs from the collection's dimensions.
        """

    @abstractmethod
    async def update_documents(self, collection_name: str, documents: list[VectorDocument]) -> None:
        """Replace content, embedding and metadata of existing ids (upsert)."""

    @abstractmethod
    async def delete_documents(self, collection_name: str, ids: list[str]) -> None:
        """Remove vectors by id.  Missing ids are ignored."""

    @abstractmethod
    async def delete_by_filter(self, collection_name: str, filter: dict[str, Any]) -> None:
        """Remove every vector whose metadata equals *filter* on all its keys.

        An empty *filter* is rejected with
        :class:`~ragline.utils.errors.ValidationError` rather than clearing
        the collection.
        """

    @abstractmethod
    async def get_document(self, collection_name: str, document_id: str) -> VectorDocument | None:
        """Return one stored entry, or ``None``."""

    @abstractmethod
    async def search(
        self,
        collection_name: str,
        query_vector: list[float],
        k: int = 10,
        filter: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Return up to *k* nearest entries ranked by descending similarity.

        Parameters
        ----------
        collection_name:
            Collection to search.
        query_vector:
            Query embedding; same length as the collection's vectors.
        k:
            Maximum number of results.
        filter:
            Optional equality filter on metadata keys, e.g.
            ``{"documentId": 12}``.

        Returns
        -------
        list[SearchResult]
            ``score`` is the cosine similarity (``1 - cosine distance``).

        Raises
        ------
        ragline.utils.errors.ValidationError
            If the query vector's length differs from the collection's
            dimensions.
        """

    @abstractmethod
    async def get_collection_stats(self, collection_name: str) -> CollectionStats:
        """Return the entry count, dimensionality and index type."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if a client is currently connected."""

    # ------------------------------------------------------------------
    # Batch helpers
    # ------------------------------------------------------------------

    async def batch_add_documents(
        self,
        collection_name: str,
        documents: list[VectorDocument],
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> None:
        """Upsert *documents* in slices of *batch_size*."""
        for start in range(0, len(documents), batch_size):
            await self.add_documents(collection_name, documents[start : start + batch_size])

    async def batch_delete_documents(
        self,
        collection_name: str,
        ids: list[str],
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> None:
        """Delete *ids* in slices of *batch_size*."""
        for start in range(0, len(ids), batch_size):
            await self.delete_documents(collection_name, ids[start : start + batch_size])

    # ------------------------------------------------------------------
    # Shared validation
    # ------------------------------------------------------------------

    def validate_collection_name(self, name: str) -> None:
        if not name or not _COLLECTION_NAME_RE.match(name):
            raise ValidationError(
                message=(
                    f"Invalid collection name {name!r}: "
                    "only letters, digits, '_' and '-' are allowed"
                ),
                provider_name=self.get_provider_name(),
            )

    def validate_filter(self, filter: dict[str, Any]) -> None:
        if not filter:
            raise ValidationError(
                message="A metadata filter needs at least one key",
                provider_name=self.get_provider_name(),
            )

    def validate_query_vector(self, query_vector: list[float], dimensions: int | None) -> None:
        if dimensions is not None and len(query_vector) != dimensions:
            raise ValidationError(
                message=(
                    f"Query vector has {len(query_vector)} dimensions, "
                    f"collection expects {dimensions}"
                ),
                provider_name=self.get_provider_name(),
            )

    def validate_dimensions(self, dimensions: int) -> None:
        if not isinstance(dimensions, int) or isinstance(dimensions, bool) or dimensions <= 0:
            raise ValidationError(
                message=f"Dimensions must be a positive integer, got {dimensions!r}",
                provider_name=self.get_provider_name(),
            )
