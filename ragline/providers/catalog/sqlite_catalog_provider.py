"""SQLite-backed Catalog provider.

Persists vector-store configs, collections, documents, chunks and the
strategy parameter sets to a local SQLite database (``data/catalog.db`` by
default).  Uses ``aiosqlite`` for async I/O and opens one connection per
operation.

JSON columns (``settings``, ``metadata``, ``custom_rules``, ``embedding``)
are stored as TEXT and decoded when rows are turned into models.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite
import structlog
from pydantic import BaseModel

from ragline.interfaces.catalog_provider import ICatalogProvider
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
    ProcessingStatus,
    RerankingStrategyConfig,
    RerankingStrategyCreate,
    RerankingStrategyUpdate,
    VectorStoreConfig,
    VectorStoreConfigCreate,
    VectorStoreConfigUpdate,
)
from ragline.services.chunking.chunkers import validate_chunking_params
from ragline.utils.errors import ConflictError, ValidationError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/catalog.db")

_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

_CREATE_TABLES_SQL = [
    f"""\
CREATE TABLE IF NOT EXISTS vector_stores (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    name              TEXT    NOT NULL UNIQUE,
    type              TEXT    NOT NULL,
    connection_string TEXT,
    api_key           TEXT,
    settings          TEXT,
    enabled           INTEGER NOT NULL DEFAULT 1,
    is_default        INTEGER NOT NULL DEFAULT 0,
    created_at        TEXT    NOT NULL DEFAULT ({_NOW}),
    updated_at        TEXT    NOT NULL DEFAULT ({_NOW})
);
""",
    f"""\
CREATE TABLE IF NOT EXISTS chunking_strategies (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    name          TEXT    NOT NULL UNIQUE,
    type          TEXT    NOT NULL,
    chunk_size    INTEGER NOT NULL,
    chunk_overlap INTEGER NOT NULL,
    separator     TEXT,
    settings      TEXT,
    is_default    INTEGER NOT NULL DEFAULT 0,
    created_at    TEXT    NOT NULL DEFAULT ({_NOW}),
    updated_at    TEXT    NOT NULL DEFAULT ({_NOW})
);
""",
    f"""\
CREATE TABLE IF NOT EXISTS cleansing_configs (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    name                TEXT    NOT NULL UNIQUE,
    remove_headers      INTEGER NOT NULL DEFAULT 1,
    remove_footers      INTEGER NOT NULL DEFAULT 1,
    remove_page_numbers INTEGER NOT NULL DEFAULT 1,
    normalize_whitespace INTEGER NOT NULL DEFAULT 1,
    fix_encoding        INTEGER NOT NULL DEFAULT 1,
    remove_urls         INTEGER NOT NULL DEFAULT 0,
    remove_emails       INTEGER NOT NULL DEFAULT 0,
    custom_rules        TEXT,
    llm_model           TEXT,
    cleansing_prompt    TEXT,
    is_default          INTEGER NOT NULL DEFAULT 0,
    created_at          TEXT    NOT NULL DEFAULT ({_NOW}),
    updated_at          TEXT    NOT NULL DEFAULT ({_NOW})
);
""",
    f"""\
CREATE TABLE IF NOT EXISTS reranking_strategies (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    name            TEXT    NOT NULL UNIQUE,
    type            TEXT    NOT NULL,
    reranking_model TEXT,
    top_k           INTEGER,
    min_score       REAL,
    settings        TEXT,
    is_default      INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT    NOT NULL DEFAULT ({_NOW}),
    updated_at      TEXT    NOT NULL DEFAULT ({_NOW})
);
""",
    f"""\
CREATE TABLE IF NOT EXISTS collections (
    id                            INTEGER PRIMARY KEY AUTOINCREMENT,
    vector_store_id               INTEGER NOT NULL REFERENCES vector_stores(id),
    name                          TEXT    NOT NULL,
    description                   TEXT,
    embedding_model               TEXT    NOT NULL,
    embedding_dimensions          INTEGER NOT NULL CHECK (embedding_dimensions > 0),
    is_active                     INTEGER NOT NULL DEFAULT 1,
    default_chunking_strategy_id  INTEGER REFERENCES chunking_strategies(id) ON DELETE SET NULL,
    default_cleansing_config_id   INTEGER REFERENCES cleansing_configs(id) ON DELETE SET NULL,
    default_reranking_strategy_id INTEGER REFERENCES reranking_strategies(id) ON DELETE SET NULL,
    metadata                      TEXT,
    created_at                    TEXT    NOT NULL DEFAULT ({_NOW}),
    updated_at                    TEXT    NOT NULL DEFAULT ({_NOW}),
    UNIQUE(vector_store_id, name)
);
""",
    f"""\
CREATE TABLE IF NOT EXISTS documents (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    collection_id     INTEGER NOT NULL REFERENCES collections(id),
    title             TEXT    NOT NULL,
    filename          TEXT    NOT NULL,
    mime_type         TEXT,
    file_size         INTEGER NOT NULL DEFAULT 0,
    content_hash      TEXT    NOT NULL,
    content_type      TEXT    NOT NULL DEFAULT 'unknown',
    raw_content       TEXT,
    metadata          TEXT,
    processing_status TEXT    NOT NULL DEFAULT 'pending',
    error_message     TEXT,
    created_at        TEXT    NOT NULL DEFAULT ({_NOW}),
    updated_at        TEXT    NOT NULL DEFAULT ({_NOW})
);
""",
    """\
CREATE TABLE IF NOT EXISTS document_chunks (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id     INTEGER NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    chunk_index     INTEGER NOT NULL,
    content         TEXT    NOT NULL,
    cleaned_content TEXT,
    embedding       TEXT,
    token_count     INTEGER,
    metadata        TEXT,
    UNIQUE(document_id, chunk_index)
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_collections_store ON collections(vector_store_id);",
    "CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection_id);",
    "CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(processing_status);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON document_chunks(document_id);",
]

_COLLECTION_WITH_STORE_SQL = """\
SELECT c.*,
       vs.name AS vector_store_name,
       vs.type AS vector_store_type,
       cs.name AS chunking_strategy_name,
       cc.name AS cleansing_config_name,
       rs.name AS reranking_strategy_name
FROM collections c
JOIN vector_stores vs ON vs.id = c.vector_store_id
LEFT JOIN chunking_strategies cs ON cs.id = c.default_chunking_strategy_id
LEFT JOIN cleansing_configs cc ON cc.id = c.default_cleansing_config_id
LEFT JOIN reranking_strategies rs ON rs.id = c.default_reranking_strategy_id
"""

_INSERT_CHUNK_SQL = """\
INSERT INTO document_chunks
    (document_id, chunk_index, content, cleaned_content, embedding, token_count, metadata)
VALUES (?, ?, ?, ?, ?, ?, ?);
"""

# Tables whose is_default flag is kept unique (last write wins).
_DEFAULT_FLAG_TABLES = frozenset(
    {"vector_stores", "chunking_strategies", "cleansing_configs", "reranking_strategies"}
)

_STRATEGY_COLUMNS = frozenset(
    {
        "default_chunking_strategy_id",
        "default_cleansing_config_id",
        "default_reranking_strategy_id",
    }
)

_DOCUMENT_MUTABLE_FIELDS = frozenset(
    {"processing_status", "error_message", "raw_content", "metadata", "title"}
)

# JSON-encoded columns and the empty value used when the column is NULL.
_JSON_COLUMNS: dict[str, Any] = {
    "settings": dict,
    "metadata": dict,
    "custom_rules": list,
    "embedding": lambda: None,
}


def _encode(fields: dict[str, Any]) -> dict[str, Any]:
    """Serialize JSON columns for writing."""
    encoded: dict[str, Any] = {}
    for key, value in fields.items():
        if key in _JSON_COLUMNS and value is not None:
            encoded[key] = json.dumps(value)
        elif isinstance(value, ProcessingStatus):
            encoded[key] = value.value
        else:
            encoded[key] = value
    return encoded


def _decode(row: aiosqlite.Row | None) -> dict[str, Any] | None:
    """Turn a row into a dict with JSON columns parsed."""
    if row is None:
        return None
    data = dict(row)
    for key, empty in _JSON_COLUMNS.items():
        if key in data:
            raw = data[key]
            value = json.loads(raw) if raw else None
            data[key] = empty() if value is None else value
    return data


class SQLiteCatalogProvider(ICatalogProvider):
    """SQLite-backed Catalog persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys = ON")
            yield db

    async def initialize(self) -> None:
        """Create the catalog tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("catalog_db_initialized", path=str(self._db_path))

    def get_provider_name(self) -> str:
        return "sqlite_catalog"

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------

    async def _fetch_one(self, sql: str, params: tuple[Any, ...] = ()) -> dict[str, Any] | None:
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            row = await cursor.fetchone()
        return _decode(row)

    async def _fetch_all(self, sql: str, params: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [_decode(r) for r in rows]  # type: ignore[misc]

    async def _insert(self, table: str, fields: dict[str, Any]) -> int:
        fields = _encode(fields)
        columns = list(fields)
        sql = (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )
        try:
            async with self._connect() as db:
                cursor = await db.execute(sql, [fields[c] for c in columns])
                new_id = cursor.lastrowid
                if table in _DEFAULT_FLAG_TABLES and fields.get("is_default"):
                    await db.execute(
                        f"UPDATE {table} SET is_default = 0 WHERE id != ?", (new_id,)
                    )
                await db.commit()
        except sqlite3.IntegrityError as exc:
            raise ConflictError(
                message=f"Cannot insert into {table}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return int(new_id)  # type: ignore[arg-type]

    async def _update(self, table: str, row_id: int, fields: dict[str, Any]) -> bool:
        """Update *fields* of one row.  Returns ``False`` if the row is gone."""
        fields = _encode(fields)
        assignments = [f"{column} = ?" for column in fields]
        assignments.append(f"updated_at = {_NOW}")
        sql = f"UPDATE {table} SET {', '.join(assignments)} WHERE id = ?"
        try:
            async with self._connect() as db:
                cursor = await db.execute(sql, [*fields.values(), row_id])
                updated = cursor.rowcount > 0
                if updated and table in _DEFAULT_FLAG_TABLES and fields.get("is_default"):
                    await db.execute(
                        f"UPDATE {table} SET is_default = 0 WHERE id != ?", (row_id,)
                    )
                await db.commit()
        except sqlite3.IntegrityError as exc:
            raise ConflictError(
                message=f"Cannot update {table} #{row_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return updated

    async def _delete(self, table: str, row_id: int) -> bool:
        try:
            async with self._connect() as db:
                cursor = await db.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))
                await db.commit()
        except sqlite3.IntegrityError as exc:
            raise ConflictError(
                message=f"Cannot delete {table} #{row_id}: rows still reference it",
                provider_name=self.get_provider_name(),
            ) from exc
        return cursor.rowcount > 0

    @staticmethod
    def _changes(data: BaseModel) -> dict[str, Any]:
        return data.model_dump(mode="json", exclude_unset=True)

    # ------------------------------------------------------------------
    # Vector stores
    # ------------------------------------------------------------------

    async def list_vector_stores(self) -> list[VectorStoreConfig]:
        rows = await self._fetch_all("SELECT * FROM vector_stores ORDER BY id")
        return [VectorStoreConfig(**r) for r in rows]

    async def get_vector_store(self, store_id: int) -> VectorStoreConfig | None:
        row = await self._fetch_one("SELECT * FROM vector_stores WHERE id = ?", (store_id,))
        return VectorStoreConfig(**row) if row else None

    async def create_vector_store(self, data: VectorStoreConfigCreate) -> VectorStoreConfig:
        new_id = await self._insert("vector_stores", data.model_dump(mode="json"))
        logger.info("vector_store_created", store_id=new_id, name=data.name, type=data.type.value)
        return await self.get_vector_store(new_id)  # type: ignore[return-value]

    async def update_vector_store(
        self, store_id: int, data: VectorStoreConfigUpdate
    ) -> VectorStoreConfig | None:
        if not await self._update("vector_stores", store_id, self._changes(data)):
            return None
        return await self.get_vector_store(store_id)

    async def delete_vector_store(self, store_id: int) -> bool:
        dependents = await self.list_collections(vector_store_id=store_id)
        if dependents:
            raise ConflictError(
                message=(
                    f"Vector store #{store_id} still has {len(dependents)} collection(s)"
                ),
                provider_name=self.get_provider_name(),
            )
        return await self._delete("vector_stores", store_id)

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def list_collections(self, vector_store_id: int | None = None) -> list[Collection]:
        if vector_store_id is None:
            rows = await self._fetch_all("SELECT * FROM collections ORDER BY id")
        else:
            rows = await self._fetch_all(
                "SELECT * FROM collections WHERE vector_store_id = ? ORDER BY id",
                (vector_store_id,),
            )
        return [Collection(**r) for r in rows]

    async def list_collections_with_store(
        self, vector_store_id: int | None = None
    ) -> list[CollectionWithStore]:
        if vector_store_id is None:
            rows = await self._fetch_all(_COLLECTION_WITH_STORE_SQL + " ORDER BY c.id")
        else:
            rows = await self._fetch_all(
                _COLLECTION_WITH_STORE_SQL + " WHERE c.vector_store_id = ? ORDER BY c.id",
                (vector_store_id,),
            )
        return [CollectionWithStore(**r) for r in rows]

    async def get_collection(self, collection_id: int) -> Collection | None:
        row = await self._fetch_one("SELECT * FROM collections WHERE id = ?", (collection_id,))
        return Collection(**row) if row else None

    async def get_collection_with_store(self, collection_id: int) -> CollectionWithStore | None:
        row = await self._fetch_one(_COLLECTION_WITH_STORE_SQL + " WHERE c.id = ?", (collection_id,))
        return CollectionWithStore(**row) if row else None

    async def get_collection_by_name(self, vector_store_id: int, name: str) -> Collection | None:
        row = await self._fetch_one(
            "SELECT * FROM collections WHERE vector_store_id = ? AND name = ?",
            (vector_store_id, name),
        )
        return Collection(**row) if row else None

    async def create_collection(self, data: CollectionCreate) -> Collection:
        new_id = await self._insert("collections", data.model_dump(mode="json"))
        logger.info(
            "collection_created",
            collection_id=new_id,
            name=data.name,
            vector_store_id=data.vector_store_id,
        )
        return await self.get_collection(new_id)  # type: ignore[return-value]

    async def update_collection(
        self, collection_id: int, data: CollectionUpdate
    ) -> Collection | None:
        if not await self._update("collections", collection_id, self._changes(data)):
            return None
        return await self.get_collection(collection_id)

    async def delete_collection(self, collection_id: int) -> bool:
        count = await self.count_documents(collection_id)
        if count:
            raise ConflictError(
                message=f"Cannot delete collection #{collection_id} with {count} existing document(s)",
                provider_name=self.get_provider_name(),
            )
        return await self._delete("collections", collection_id)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def create_document(self, data: DocumentCreate) -> Document:
        fields = data.model_dump(mode="json")
        fields["processing_status"] = ProcessingStatus.PENDING.value
        new_id = await self._insert("documents", fields)
        return await self.get_document(new_id)  # type: ignore[return-value]

    async def get_document(self, document_id: int) -> Document | None:
        row = await self._fetch_one("SELECT * FROM documents WHERE id = ?", (document_id,))
        return Document(**row) if row else None

    async def list_documents(self, collection_id: int) -> list[Document]:
        rows = await self._fetch_all(
            "SELECT * FROM documents WHERE collection_id = ? ORDER BY id", (collection_id,)
        )
        return [Document(**r) for r in rows]

    async def count_documents(self, collection_id: int) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM documents WHERE collection_id = ?", (collection_id,)
            )
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def update_document(self, document_id: int, **fields: Any) -> bool:
        unknown = set(fields) - _DOCUMENT_MUTABLE_FIELDS
        if unknown:
            raise ValidationError(
                message=f"Unknown document fields: {', '.join(sorted(unknown))}",
                provider_name=self.get_provider_name(),
            )
        if "processing_status" in fields:
            return await self._transition_document(document_id, fields)
        updated = await self._update("documents", document_id, fields)
        if not updated:
            logger.info("document_update_skipped", document_id=document_id, reason="deleted")
        return updated

    async def _transition_document(self, document_id: int, fields: dict[str, Any]) -> bool:
        """Apply a status change only from a state that may move to it.

        The source-state check is part of the UPDATE, so two writers cannot
        both move the same document out of one state.
        """
        target = ProcessingStatus(fields["processing_status"])
        sources = [s.value for s in ProcessingStatus if s.can_transition_to(target)]
        encoded = _encode(fields)
        assignments = [f"{column} = ?" for column in encoded]
        assignments.append(f"updated_at = {_NOW}")
        sql = (
            f"UPDATE documents SET {', '.join(assignments)} "
            f"WHERE id = ? AND processing_status IN ({', '.join('?' for _ in sources)})"
        )
        async with self._connect() as db:
            cursor = await db.execute(sql, [*encoded.values(), document_id, *sources])
            updated = cursor.rowcount > 0
            current = None
            if not updated:
                cursor = await db.execute(
                    "SELECT processing_status FROM documents WHERE id = ?", (document_id,)
                )
                current = await cursor.fetchone()
            await db.commit()

        if updated:
            return True
        if current is None:
            logger.info("document_update_skipped", document_id=document_id, reason="deleted")
            return False
        raise ConflictError(
            message=(
                f"Document #{document_id} cannot move from "
                f"'{current['processing_status']}' to '{target.value}'"
            ),
            provider_name=self.get_provider_name(),
        )

    async def delete_document(self, document_id: int) -> bool:
        return await self._delete("documents", document_id)

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def replace_chunks(self, document_id: int, chunks: list[DocumentChunk]) -> bool:
        rows = [
            (
                document_id,
                c.chunk_index,
                c.content,
                c.cleaned_content,
                json.dumps(c.embedding) if c.embedding is not None else None,
                c.token_count,
                json.dumps(c.metadata),
            )
            for c in chunks
        ]
        async with self._connect() as db:
            cursor = await db.execute("SELECT 1 FROM documents WHERE id = ?", (document_id,))
            if await cursor.fetchone() is None:
                logger.info("chunk_write_skipped", document_id=document_id, reason="deleted")
                return False
            await db.execute("DELETE FROM document_chunks WHERE document_id = ?", (document_id,))
            await db.executemany(_INSERT_CHUNK_SQL, rows)
            await db.commit()
        return True

    async def list_chunks(self, document_id: int) -> list[DocumentChunk]:
        rows = await self._fetch_all(
            "SELECT * FROM document_chunks WHERE document_id = ? ORDER BY chunk_index",
            (document_id,),
        )
        return [DocumentChunk(**r) for r in rows]

    async def delete_chunks(self, document_id: int) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM document_chunks WHERE document_id = ?", (document_id,)
            )
            await db.commit()
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Chunking strategies
    # ------------------------------------------------------------------

    async def list_chunking_strategies(self) -> list[ChunkingStrategyConfig]:
        rows = await self._fetch_all("SELECT * FROM chunking_strategies ORDER BY id")
        return [ChunkingStrategyConfig(**r) for r in rows]

    async def get_chunking_strategy(self, strategy_id: int) -> ChunkingStrategyConfig | None:
        row = await self._fetch_one(
            "SELECT * FROM chunking_strategies WHERE id = ?", (strategy_id,)
        )
        return ChunkingStrategyConfig(**row) if row else None

    async def get_default_chunking_strategy(self) -> ChunkingStrategyConfig | None:
        row = await self._fetch_one(
            "SELECT * FROM chunking_strategies WHERE is_default = 1 ORDER BY updated_at DESC LIMIT 1"
        )
        return ChunkingStrategyConfig(**row) if row else None

    async def create_chunking_strategy(self, data: ChunkingStrategyCreate) -> ChunkingStrategyConfig:
        validate_chunking_params(data.chunk_size, data.chunk_overlap)
        new_id = await self._insert("chunking_strategies", data.model_dump(mode="json"))
        return await self.get_chunking_strategy(new_id)  # type: ignore[return-value]

    async def update_chunking_strategy(
        self, strategy_id: int, data: ChunkingStrategyUpdate
    ) -> ChunkingStrategyConfig | None:
        if data.chunk_size is not None or data.chunk_overlap is not None:
            current = await self.get_chunking_strategy(strategy_id)
            if current is None:
                return None
            validate_chunking_params(
                data.chunk_size if data.chunk_size is not None else current.chunk_size,
                data.chunk_overlap if data.chunk_overlap is not None else current.chunk_overlap,
            )
        if not await self._update("chunking_strategies", strategy_id, self._changes(data)):
            return None
        return await self.get_chunking_strategy(strategy_id)

    async def delete_chunking_strategy(self, strategy_id: int) -> bool:
        return await self._delete("chunking_strategies", strategy_id)

    # ------------------------------------------------------------------
    # Cleansing configs
    # ------------------------------------------------------------------

    async def list_cleansing_configs(self) -> list[CleansingConfig]:
        rows = await self._fetch_all("SELECT * FROM cleansing_configs ORDER BY id")
        return [CleansingConfig(**r) for r in rows]

    async def get_cleansing_config(self, config_id: int) -> CleansingConfig | None:
        row = await self._fetch_one("SELECT * FROM cleansing_configs WHERE id = ?", (config_id,))
        return CleansingConfig(**row) if row else None

    async def get_default_cleansing_config(self) -> CleansingConfig | None:
        row = await self._fetch_one(
            "SELECT * FROM cleansing_configs WHERE is_default = 1 ORDER BY updated_at DESC LIMIT 1"
        )
        return CleansingConfig(**row) if row else None

    async def create_cleansing_config(self, data: CleansingConfigCreate) -> CleansingConfig:
        new_id = await self._insert("cleansing_configs", data.model_dump(mode="json"))
        return await self.get_cleansing_config(new_id)  # type: ignore[return-value]

    async def update_cleansing_config(
        self, config_id: int, data: CleansingConfigUpdate
    ) -> CleansingConfig | None:
        if not await self._update("cleansing_configs", config_id, self._changes(data)):
            return None
        return await self.get_cleansing_config(config_id)

    async def delete_cleansing_config(self, config_id: int) -> bool:
        return await self._delete("cleansing_configs", config_id)

    # ------------------------------------------------------------------
    # Reranking strategies
    # ------------------------------------------------------------------

    async def list_reranking_strategies(self) -> list[RerankingStrategyConfig]:
        rows = await self._fetch_all("SELECT * FROM reranking_strategies ORDER BY id")
        return [RerankingStrategyConfig(**r) for r in rows]

    async def get_reranking_strategy(self, strategy_id: int) -> RerankingStrategyConfig | None:
        row = await self._fetch_one(
            "SELECT * FROM reranking_strategies WHERE id = ?", (strategy_id,)
        )
        return RerankingStrategyConfig(**row) if row else None

    async def get_default_reranking_strategy(self) -> RerankingStrategyConfig | None:
        row = await self._fetch_one(
            "SELECT * FROM reranking_strategies WHERE is_default = 1 ORDER BY updated_at DESC LIMIT 1"
        )
        return RerankingStrategyConfig(**row) if row else None

    async def create_reranking_strategy(
        self, data: RerankingStrategyCreate
    ) -> RerankingStrategyConfig:
        new_id = await self._insert("reranking_strategies", data.model_dump(mode="json"))
        return await self.get_reranking_strategy(new_id)  # type: ignore[return-value]

    async def update_reranking_strategy(
        self, strategy_id: int, data: RerankingStrategyUpdate
    ) -> RerankingStrategyConfig | None:
        if not await self._update("reranking_strategies", strategy_id, self._changes(data)):
            return None
        return await self.get_reranking_strategy(strategy_id)

    async def delete_reranking_strategy(self, strategy_id: int) -> bool:
        return await self._delete("reranking_strategies", strategy_id)

    async def collections_using_strategy(self, column: str, strategy_id: int) -> list[str]:
        if column not in _STRATEGY_COLUMNS:
            raise ValidationError(
                message=f"Unknown strategy column: {column}",
                provider_name=self.get_provider_name(),
            )
        rows = await self._fetch_all(
            f"SELECT name FROM collections WHERE {column} = ? ORDER BY id", (strategy_id,)
        )
        return [r["name"] for r in rows]
