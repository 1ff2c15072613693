"""ChromaDB vector store provider adapter.

Wraps ``chromadb.HttpClient`` (for ``http(s)://`` connection strings) or
``chromadb.PersistentClient`` (for filesystem paths) to implement
:class:`IVectorStoreProvider`.  Uses cosine distance for similarity search
and always stores pre-computed embeddings.

The chromadb client is synchronous, so every call is pushed to a worker
thread with ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Callable
from typing import Any, TypeVar
from urllib.parse import urlparse

# Disable ChromaDB telemetry before importing chromadb.  The PostHog client
# bundled with some chromadb releases breaks against the installed posthog
# package ("capture() takes 1 positional argument but 3 were given").
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from ragline.interfaces.vector_store_provider import IVectorStoreProvider
from ragline.models.rag import CollectionInfo, CollectionStats, SearchResult, VectorDocument
from ragline.utils.errors import NotFoundError, RaglineError, ValidationError, VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

_DEFAULT_PERSIST_DIRECTORY = "./data/chromadb"

# Collection-metadata keys owned by this adapter.
_SPACE_KEY = "hnsw:space"
_DIMENSIONS_KEY = "dimensions"
_DESCRIPTION_KEY = "description"


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    Every vector written through this adapter is computed by an
    :class:`~ragline.interfaces.embedding_provider.IEmbeddingProvider`
    first, so ChromaDB's built-in ONNX model is never needed.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "ragline uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


def _scalar_metadata(metadata: dict[str, Any] | None) -> dict[str, Any]:
    """Coerce metadata to the scalar types ChromaDB accepts.

    ``None`` values are dropped; lists and dicts are JSON-encoded.
    """
    clean: dict[str, Any] = {}
    for key, value in (metadata or {}).items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            clean[key] = value
        else:
            clean[key] = json.dumps(value)
    return clean


def _where_clause(filter: dict[str, Any]) -> dict[str, Any]:
    """Translate an equality filter to ChromaDB's ``where`` syntax."""
    conditions = [{key: {"$eq": value}} for key, value in filter.items()]
    if len(conditions) == 1:
        return conditions[0]
    return {"$and": conditions}


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB.

    Parameters
    ----------
    connection_string:
        ``http://host:port`` / ``https://host:port`` for a ChromaDB server,
        otherwise a directory used for local persistence.
    api_key:
        Optional token sent as the ``X-Chroma-Token`` header to a server.
    settings:
        Backend-specific options.  ``tenant`` and ``database`` are passed
        through to the HTTP client when present.
    """

    def __init__(
        self,
        connection_string: str | None = None,
        api_key: str | None = None,
        settings: dict[str, Any] | None = None,
    ) -> None:
        self._connection_string = connection_string or _DEFAULT_PERSIST_DIRECTORY
        self._api_key = api_key
        self._settings = settings or {}
        self._client: Any = None

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def _build_client(self) -> Any:
        client_settings = chromadb.config.Settings(anonymized_telemetry=False)
        parsed = urlparse(self._connection_string)
        if parsed.scheme in ("http", "https"):
            ssl = parsed.scheme == "https"
            kwargs: dict[str, Any] = {
                "host": parsed.hostname or "localhost",
                "port": parsed.port or (443 if ssl else 8000),
                "ssl": ssl,
                "settings": client_settings,
            }
            if self._api_key:
                kwargs["headers"] = {"X-Chroma-Token": self._api_key}
            for key in ("tenant", "database"):
                if key in self._settings:
                    kwargs[key] = self._settings[key]
            return chromadb.HttpClient(**kwargs)
        os.makedirs(self._connection_string, exist_ok=True)
        return chromadb.PersistentClient(path=self._connection_string, settings=client_settings)

    async def connect(self) -> None:
        if self._client is not None:
            return
        try:
            self._client = await asyncio.to_thread(self._build_client)
        except Exception as exc:
            raise VectorStoreError(
                message=f"Cannot connect to ChromaDB at {self._connection_string}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.debug("chromadb_connected", target=self._connection_string)

    async def disconnect(self) -> None:
        # chromadb clients hold no sockets that need closing; drop the reference.
        self._client = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run(self, operation: str, func: Callable[..., _T], *args: Any, **kwargs: Any) -> _T:
        """Run a blocking chromadb call in a thread, wrapping backend errors."""
        if self._client is None:
            raise VectorStoreError(
                message=f"ChromaDB client is not connected (during {operation})",
                provider_name=self.get_provider_name(),
            )
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except RaglineError:
            raise
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB {operation} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def _collection_names(self) -> list[str]:
        # chromadb 0.6 returns names; 0.5 and 1.x return Collection objects.
        return [c if isinstance(c, str) else c.name for c in self._client.list_collections()]

    def _open_collection(self, name: str) -> Any:
        if name not in self._collection_names():
            raise NotFoundError(
                message=f"Collection '{name}' not found",
                provider_name=self.get_provider_name(),
            )
        try:
            return self._client.get_collection(
                name=name, embedding_function=_NoopEmbeddingFunction()
            )
        except ValueError:
            # Collection persisted with a different embedding function.
            return self._client.get_collection(name=name)

    @staticmethod
    def _dimensions_of(collection: Any) -> int | None:
        value = (collection.metadata or {}).get(_DIMENSIONS_KEY)
        return int(value) if value is not None else None

    def _check_vectors(self, collection: Any, documents: list[VectorDocument]) -> None:
        expected = self._dimensions_of(collection)
        if expected is None:
            return
        for doc in documents:
            if len(doc.embedding) != expected:
                raise ValidationError(
                    message=(
                        f"Vector for '{doc.id}' has {len(doc.embedding)} dimensions, "
                        f"collection '{collection.name}' expects {expected}"
                    ),
                    provider_name=self.get_provider_name(),
                )

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

        def _create() -> bool:
            if name in self._collection_names():
                existing = self._dimensions_of(self._client.get_collection(name=name))
                if existing is not None and existing != dimensions:
                    raise ValidationError(
                        message=(
                            f"Collection '{name}' already exists with {existing} dimensions "
                            f"(requested {dimensions})"
                        ),
                        provider_name=self.get_provider_name(),
                    )
                return False
            collection_metadata = _scalar_metadata(metadata)
            collection_metadata[_SPACE_KEY] = "cosine"
            collection_metadata[_DIMENSIONS_KEY] = dimensions
            self._client.create_collection(
                name=name,
                metadata=collection_metadata,
                embedding_function=_NoopEmbeddingFunction(),
            )
            return True

        created = await self._run("create_collection", _create)
        if created:
            logger.info("chromadb_collection_created", collection=name, dimensions=dimensions)

    async def list_collections(self) -> list[CollectionInfo]:
        def _list() -> list[CollectionInfo]:
            infos = []
            for name in self._collection_names():
                collection = self._client.get_collection(name=name)
                infos.append(self._to_info(collection))
            return infos

        return await self._run("list_collections", _list)

    async def get_collection(self, name: str) -> CollectionInfo | None:
        def _get() -> CollectionInfo | None:
            if name not in self._collection_names():
                return None
            return self._to_info(self._client.get_collection(name=name))

        return await self._run("get_collection", _get)

    async def delete_collection(self, name: str) -> None:
        def _delete() -> bool:
            if name not in self._collection_names():
                return False
            self._client.delete_collection(name=name)
            return True

        if await self._run("delete_collection", _delete):
            logger.info("chromadb_collection_deleted", collection=name)

    @staticmethod
    def _to_info(collection: Any) -> CollectionInfo:
        metadata = dict(collection.metadata or {})
        metadata.pop(_SPACE_KEY, None)
        description = metadata.pop(_DESCRIPTION_KEY, None)
        return CollectionInfo(name=collection.name, description=description, metadata=metadata)

    # ------------------------------------------------------------------
    # Document CRUD
    # ------------------------------------------------------------------

    async def add_documents(self, collection_name: str, documents: list[VectorDocument]) -> None:
        if not documents:
            return

        def _upsert() -> None:
            collection = self._open_collection(collection_name)
            self._check_vectors(collection, documents)
            collection.upsert(
                ids=[d.id for d in documents],
                embeddings=[list(d.embedding) for d in documents],
                documents=[d.content for d in documents],
                metadatas=[_scalar_metadata(d.metadata) or None for d in documents],
            )

        await self._run("add_documents", _upsert)
        logger.debug("chromadb_upsert", collection=collection_name, count=len(documents))

    async def update_documents(self, collection_name: str, documents: list[VectorDocument]) -> None:
        await self.add_documents(collection_name, documents)

    async def delete_documents(self, collection_name: str, ids: list[str]) -> None:
        if not ids:
            return

        def _delete() -> None:
            self._open_collection(collection_name).delete(ids=list(ids))

        await self._run("delete_documents", _delete)

    async def delete_by_filter(self, collection_name: str, filter: dict[str, Any]) -> None:
        self.validate_filter(filter)

        def _delete() -> None:
            self._open_collection(collection_name).delete(where=_where_clause(filter))

        await self._run("delete_by_filter", _delete)

    async def get_document(self, collection_name: str, document_id: str) -> VectorDocument | None:
        def _get() -> VectorDocument | None:
            collection = self._open_collection(collection_name)
            result = collection.get(
                ids=[document_id], include=["documents", "metadatas", "embeddings"]
            )
            if not result["ids"]:
                return None
            embeddings = result.get("embeddings")
            embedding = [float(x) for x in embeddings[0]] if embeddings is not None else []
            documents = result.get("documents") or [""]
            metadatas = result.get("metadatas") or [None]
            return VectorDocument(
                id=result["ids"][0],
                content=documents[0] or "",
                embedding=embedding,
                metadata=metadatas[0] or {},
            )

        return await self._run("get_document", _get)

    async def search(
        self,
        collection_name: str,
        query_vector: list[float],
        k: int = 10,
        filter: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        def _query() -> list[SearchResult]:
            collection = self._open_collection(collection_name)
            self.validate_query_vector(query_vector, self._dimensions_of(collection))
            count = collection.count()
            if count == 0 or k <= 0:
                return []
            kwargs: dict[str, Any] = {
                "query_embeddings": [list(query_vector)],
                "n_results": min(k, count),
                "include": ["documents", "metadatas", "distances"],
            }
            if filter:
                kwargs["where"] = _where_clause(filter)
            results = collection.query(**kwargs)
            if not results["ids"] or not results["ids"][0]:
                return []

            ids = results["ids"][0]
            documents = results["documents"][0] if results.get("documents") else [""] * len(ids)
            metadatas = results["metadatas"][0] if results.get("metadatas") else [{}] * len(ids)
            distances = results["distances"][0] if results.get("distances") else [1.0] * len(ids)
            return [
                SearchResult(
                    id=doc_id,
                    content=text or "",
                    score=1.0 - float(distance),
                    metadata=meta or {},
                )
                for doc_id, text, meta, distance in zip(
                    ids, documents, metadatas, distances, strict=True
                )
            ]

        hits = await self._run("search", _query)
        hits.sort(key=lambda h: h.score, reverse=True)
        logger.info(
            "chromadb_query",
            collection=collection_name,
            k=k,
            results_count=len(hits),
            top_score=hits[0].score if hits else 0.0,
        )
        return hits

    async def get_collection_stats(self, collection_name: str) -> CollectionStats:
        def _stats() -> CollectionStats:
            collection = self._open_collection(collection_name)
            metadata = collection.metadata or {}
            return CollectionStats(
                document_count=collection.count(),
                dimensions=self._dimensions_of(collection),
                index_type=f"hnsw:{metadata.get(_SPACE_KEY, 'l2')}",
            )

        return await self._run("get_collection_stats", _stats)

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        return self._client is not None
