"""Reconcile Catalog collections with the collections a vector store reports.

The backend is treated as the source of truth for *existence*:

- a backend collection without a Catalog row gets one, with placeholder
  embedding settings and ``needsReview`` set in its metadata;
- an active Catalog collection the backend no longer has is deactivated,
  never deleted, so its documents and chunk rows survive;
- an inactive Catalog collection that shows up again is left alone, so a
  second run with no backend change is a no-op.

Per-collection failures are collected in ``errors`` and do not stop the
rest of the run.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from ragline.interfaces.catalog_provider import ICatalogProvider
from ragline.interfaces.vector_store_provider import IVectorStoreProvider
from ragline.models.catalog import CollectionCreate, CollectionUpdate, VectorStoreConfig
from ragline.models.rag import CollectionInfo, SyncResult, SyncSummary
from ragline.providers.vector_store.factory import create_vector_store
from ragline.utils.errors import NotFoundError, RaglineError, ValidationError

logger = structlog.get_logger(logger_name=__name__)

SYNCED_EMBEDDING_MODEL = "text-embedding-ada-002"
SYNCED_EMBEDDING_DIMENSIONS = 1536
SYNCED_DESCRIPTION = "Synced from vector store"


class CollectionSync:
    """Diff and repair the Catalog's view of one vector store.

    Parameters
    ----------
    catalog:
        Catalog holding the collection rows.
    vector_store_factory:
        Builds an unconnected provider from a :class:`VectorStoreConfig`.
    """

    def __init__(
        self,
        catalog: ICatalogProvider,
        vector_store_factory: Callable[[VectorStoreConfig], IVectorStoreProvider] = create_vector_store,
    ) -> None:
        self._catalog = catalog
        self._vector_store_factory = vector_store_factory

    async def sync(self, vector_store_id: int) -> SyncResult:
        """Apply the diff and return what changed."""
        return await self._reconcile(vector_store_id, apply=True)

    async def check_status(self, vector_store_id: int) -> SyncResult:
        """Return the diff ``sync`` would apply, without writing anything."""
        return await self._reconcile(vector_store_id, apply=False)

    async def _reconcile(self, vector_store_id: int, apply: bool) -> SyncResult:
        store = await self._catalog.get_vector_store(vector_store_id)
        if store is None:
            raise NotFoundError(message=f"Vector store #{vector_store_id} not found")
        if not store.enabled:
            raise ValidationError(message=f"Vector store '{store.name}' is disabled")

        async with self._vector_store_factory(store) as vector_store:
            backend = {info.name: info for info in await vector_store.list_collections()}
        catalog_rows = await self._catalog.list_collections(vector_store_id)
        catalog_names = {row.name for row in catalog_rows}

        added: list[str] = []
        deactivated: list[str] = []
        errors: list[str] = []

        for name in sorted(backend.keys() - catalog_names):
            if not apply:
                added.append(name)
                continue
            try:
                await self._catalog.create_collection(self._placeholder(store.id, backend[name]))
            except (RaglineError, ValueError) as exc:
                errors.append(f"{name}: {exc}")
                logger.warning("sync_add_failed", vector_store=store.name, collection=name, error=str(exc))
            else:
                added.append(name)

        for row in sorted(catalog_rows, key=lambda r: r.name):
            if row.name in backend or not row.is_active:
                continue
            if not apply:
                deactivated.append(row.name)
                continue
            try:
                await self._catalog.update_collection(row.id, CollectionUpdate(is_active=False))
            except RaglineError as exc:
                errors.append(f"{row.name}: {exc}")
                logger.warning(
                    "sync_deactivate_failed",
                    vector_store=store.name,
                    collection=row.name,
                    error=str(exc),
                )
            else:
                deactivated.append(row.name)

        result = SyncResult(
            added_to_db=added,
            deactivated_in_db=deactivated,
            errors=errors,
            summary=SyncSummary(
                vector_store_collections=len(backend),
                db_collections=len(catalog_rows),
                added_to_db=len(added),
                deactivated_in_db=len(deactivated),
                errors=len(errors),
            ),
        )
        logger.info(
            "collection_sync_complete" if apply else "collection_sync_checked",
            vector_store=store.name,
            added=len(added),
            deactivated=len(deactivated),
            errors=len(errors),
        )
        return result

    @staticmethod
    def _placeholder(vector_store_id: int, info: CollectionInfo) -> CollectionCreate:
        dimensions: Any = info.metadata.get("dimensions")
        if isinstance(dimensions, bool) or not isinstance(dimensions, int) or dimensions <= 0:
            dimensions = SYNCED_EMBEDDING_DIMENSIONS
        return CollectionCreate(
            vector_store_id=vector_store_id,
            name=info.name,
            description=SYNCED_DESCRIPTION,
            embedding_model=SYNCED_EMBEDDING_MODEL,
            embedding_dimensions=dimensions,
            is_active=True,
            metadata={"syncedFromVectorStore": True, "needsReview": True},
        )
