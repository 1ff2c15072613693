"""Local vector store persisted to disk with faiss.

Each collection is a ``faiss.IndexIDMap2`` over a flat inner-product index
holding unit-length vectors, so the inner product is the cosine
similarity.  Two files per collection live in the directory named by the
store's ``connection_string``::

    <name>.faiss   the index, in faiss.write_index format
    <name>.json    dimensions, collection metadata, per-entry content and
                   metadata keyed by the integer faiss id

Both files are rewritten after every mutation.  Collections are loaded
once per directory and shared by every provider instance in the process;
the directory must not be written by two processes at once.

Embeddings read back through :meth:`FaissVectorStoreProvider.get_document`
are the stored unit-length vectors, not the vectors that were added.
"""

from __future__ import annotations

import asyncio
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import faiss
import numpy as np
import structlog

from ragline.interfaces.vector_store_provider import IVectorStoreProvider
from ragline.models.rag import CollectionInfo, CollectionStats, SearchResult, VectorDocument
from ragline.utils.errors import NotFoundError, ValidationError, VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_INDEX_DIRECTORY = "./data/faiss"
_INDEX_SUFFIX = ".faiss"
_STATE_SUFFIX = ".json"


@dataclass
class _Entry:
    faiss_id: int
    content: str
    metadata: dict[str, Any]


@dataclass
class _FaissCollection:
    dimensions: int
    index: Any
    metadata: dict[str, Any] = field(default_factory=dict)
    entries: dict[str, _Entry] = field(default_factory=dict)
    next_id: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def ids_by_position(self) -> dict[int, str]:
        return {entry.faiss_id: doc_id for doc_id, entry in self.entries.items()}

    def state(self) -> dict[str, Any]:
        return {
            "dimensions": self.dimensions,
            "metadata": self.metadata,
            "nextId": self.next_id,
            "entries": [
                {
                    "id": doc_id,
                    "faissId": entry.faiss_id,
                    "content": entry.content,
                    "metadata": entry.metadata,
                }
                for doc_id, entry in self.entries.items()
            ],
        }


# resolved directory -> collection name -> collection
_REGISTRY: dict[str, dict[str, _FaissCollection]] = {}


def _new_index(dimensions: int) -> Any:
    return faiss.IndexIDMap2(faiss.IndexFlatIP(dimensions))


def _unit_rows(vectors: list[list[float]]) -> np.ndarray:
    matrix = np.ascontiguousarray(vectors, dtype=np.float32)
    faiss.normalize_L2(matrix)
    return matrix


def _matches(entry: _Entry, filter: dict[str, Any]) -> bool:
    return all(entry.metadata.get(key) == value for key, value in filter.items())


class FaissVectorStoreProvider(IVectorStoreProvider):
    """Cosine-similarity search over faiss flat indexes saved in a directory.

    Parameters
    ----------
    connection_string:
        Directory holding the index files; created on first connect.
    """

    def __init__(self, connection_string: str | None = None) -> None:
        self._directory = Path(connection_string or _DEFAULT_INDEX_DIRECTORY)
        self._collections: dict[str, _FaissCollection] | None = None

    @property
    def _key(self) -> str:
        return str(self._directory.resolve())

    @classmethod
    def reset(cls, connection_string: str | None = None) -> None:
        """Drop loaded collections so the next connect reads them from disk."""
        if connection_string is None:
            _REGISTRY.clear()
        else:
            _REGISTRY.pop(str(Path(connection_string).resolve()), None)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        if self._collections is not None:
            return
        collections = _REGISTRY.get(self._key)
        if collections is None:
            try:
                loaded = await asyncio.to_thread(self._load_all)
            except (OSError, ValueError, KeyError, RuntimeError) as exc:
                raise VectorStoreError(
                    message=f"Cannot load faiss indexes from {self._directory}: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
            collections = _REGISTRY.setdefault(self._key, loaded)
        self._collections = collections
        logger.debug("faiss_connected", directory=str(self._directory), collections=len(collections))

    async def disconnect(self) -> None:
        self._collections = None

    def _load_all(self) -> dict[str, _FaissCollection]:
        self._directory.mkdir(parents=True, exist_ok=True)
        loaded: dict[str, _FaissCollection] = {}
        for state_path in sorted(self._directory.glob(f"*{_STATE_SUFFIX}")):
            state = json.loads(state_path.read_text(encoding="utf-8"))
            dimensions = int(state["dimensions"])
            index_path = state_path.with_suffix(_INDEX_SUFFIX)
            index = faiss.read_index(str(index_path)) if index_path.exists() else _new_index(dimensions)
            loaded[state_path.stem] = _FaissCollection(
                dimensions=dimensions,
                index=index,
                metadata=state.get("metadata") or {},
                entries={
                    e["id"]: _Entry(int(e["faissId"]), e["content"], e["metadata"] or {})
                    for e in state.get("entries", [])
                },
                next_id=int(state.get("nextId", 0)),
            )
        return loaded

    def _store(self) -> dict[str, _FaissCollection]:
        if self._collections is None:
            raise VectorStoreError(
                message="Faiss store is not connected",
                provider_name=self.get_provider_name(),
            )
        return self._collections

    def _get(self, name: str) -> _FaissCollection:
        collection = self._store().get(name)
        if collection is None:
            raise NotFoundError(
                message=f"Collection '{name}' not found",
                provider_name=self.get_provider_name(),
            )
        return collection

    def _paths(self, name: str) -> tuple[Path, Path]:
        return self._directory / f"{name}{_INDEX_SUFFIX}", self._directory / f"{name}{_STATE_SUFFIX}"

    async def _save(self, name: str, collection: _FaissCollection) -> None:
        """Write *collection* to disk.  Callers hold ``collection.lock``."""
        state = json.dumps(collection.state())
        index_bytes = faiss.serialize_index(collection.index).tobytes()
        try:
            await asyncio.to_thread(self._write, name, state, index_bytes)
        except OSError as exc:
            raise VectorStoreError(
                message=f"Cannot write faiss collection '{name}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def _write(self, name: str, state: str, index_bytes: bytes) -> None:
        index_path, state_path = self._paths(name)
        for path, payload in ((index_path, index_bytes), (state_path, state.encode("utf-8"))):
            partial = path.with_name(path.name + ".tmp")
            partial.write_bytes(payload)
            os.replace(partial, path)

    def _remove_files(self, name: str) -> None:
        for path in self._paths(name):
            path.unlink(missing_ok=True)

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
        collection = _FaissCollection(
            dimensions=dimensions, index=_new_index(dimensions), metadata=dict(metadata or {})
        )
        store[name] = collection
        async with collection.lock:
            try:
                await self._save(name, collection)
            except VectorStoreError:
                store.pop(name, None)
                raise
        logger.info("faiss_collection_created", collection=name, dimensions=dimensions)

    async def list_collections(self) -> list[CollectionInfo]:
        return [self._to_info(name, c) for name, c in self._store().items()]

    async def get_collection(self, name: str) -> CollectionInfo | None:
        collection = self._store().get(name)
        return self._to_info(name, collection) if collection else None

    async def delete_collection(self, name: str) -> None:
        if self._store().pop(name, None) is None:
            return
        try:
            await asyncio.to_thread(self._remove_files, name)
        except OSError as exc:
            raise VectorStoreError(
                message=f"Cannot remove faiss files of '{name}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("faiss_collection_deleted", collection=name)

    @staticmethod
    def _to_info(name: str, collection: _FaissCollection) -> CollectionInfo:
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
        if not documents:
            return

        latest = {doc.id: doc for doc in documents}
        async with collection.lock:
            replaced = [collection.entries[doc_id].faiss_id for doc_id in latest if doc_id in collection.entries]
            if replaced:
                collection.index.remove_ids(np.asarray(replaced, dtype=np.int64))
            faiss_ids = np.arange(
                collection.next_id, collection.next_id + len(latest), dtype=np.int64
            )
            collection.index.add_with_ids(
                _unit_rows([doc.embedding for doc in latest.values()]), faiss_ids
            )
            for faiss_id, doc in zip(faiss_ids.tolist(), latest.values(), strict=True):
                collection.entries[doc.id] = _Entry(faiss_id, doc.content, dict(doc.metadata))
            collection.next_id += len(latest)
            await self._save(collection_name, collection)

    async def update_documents(self, collection_name: str, documents: list[VectorDocument]) -> None:
        await self.add_documents(collection_name, documents)

    async def _remove(self, collection_name: str, collection: _FaissCollection, doc_ids: list[str]) -> int:
        """Drop *doc_ids* from index and entries.  Callers hold ``collection.lock``."""
        present = [doc_id for doc_id in doc_ids if doc_id in collection.entries]
        if not present:
            return 0
        positions = [collection.entries.pop(doc_id).faiss_id for doc_id in present]
        collection.index.remove_ids(np.asarray(positions, dtype=np.int64))
        await self._save(collection_name, collection)
        return len(present)

    async def delete_documents(self, collection_name: str, ids: list[str]) -> None:
        collection = self._get(collection_name)
        async with collection.lock:
            await self._remove(collection_name, collection, list(ids))

    async def delete_by_filter(self, collection_name: str, filter: dict[str, Any]) -> None:
        self.validate_filter(filter)
        collection = self._get(collection_name)
        async with collection.lock:
            doomed = [doc_id for doc_id, entry in collection.entries.items() if _matches(entry, filter)]
            removed = await self._remove(collection_name, collection, doomed)
        if removed:
            logger.debug("faiss_delete_by_filter", collection=collection_name, count=removed)

    async def get_document(self, collection_name: str, document_id: str) -> VectorDocument | None:
        collection = self._get(collection_name)
        entry = collection.entries.get(document_id)
        if entry is None:
            return None
        vector = collection.index.reconstruct(entry.faiss_id)
        return VectorDocument(
            id=document_id,
            content=entry.content,
            embedding=[float(x) for x in vector],
            metadata=dict(entry.metadata),
        )

    async def search(
        self,
        collection_name: str,
        query_vector: list[float],
        k: int = 10,
        filter: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        collection = self._get(collection_name)
        self.validate_query_vector(query_vector, collection.dimensions)
        total = collection.index.ntotal
        if k <= 0 or total == 0:
            return []

        # A filter is applied after ranking, so rank everything.
        limit = total if filter else min(k, total)
        scores, positions = collection.index.search(_unit_rows([query_vector]), limit)
        ids = collection.ids_by_position()

        hits: list[SearchResult] = []
        for score, position in zip(scores[0].tolist(), positions[0].tolist(), strict=True):
            doc_id = ids.get(position)
            if doc_id is None:
                continue
            entry = collection.entries[doc_id]
            if filter and not _matches(entry, filter):
                continue
            hits.append(
                SearchResult(
                    id=doc_id,
                    content=entry.content,
                    score=float(score),
                    metadata=dict(entry.metadata),
                )
            )
            if len(hits) == k:
                break
        return hits

    async def get_collection_stats(self, collection_name: str) -> CollectionStats:
        collection = self._get(collection_name)
        return CollectionStats(
            document_count=len(collection.entries),
            dimensions=collection.dimensions,
            index_type="faiss:IndexFlatIP",
        )

    def get_provider_name(self) -> str:
        return "faiss"

    def is_available(self) -> bool:
        return self._collections is not None
