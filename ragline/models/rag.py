"""Pipeline data models: chunks in flight, vector entries, search hits.

These are the values that move between the chunker, the cleanser, the
embedding provider, the vector store and the reranker.  Unlike the Catalog
entities in :mod:`ragline.models.catalog` they are never persisted as rows.
All models are frozen.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from ragline.models.catalog import USE_COLLECTION_DEFAULT, CollectionWithStore, ProcessingStatus


class TextChunk(BaseModel):
    """A contiguous slice of extracted text produced by a chunker."""

    model_config = ConfigDict(frozen=True)

    content: str
    chunk_index: int = Field(ge=0)
    start_char: int = Field(ge=0, description="Offset of the first character in the source text.")
    end_char: int = Field(ge=0, description="Offset one past the last character.")


class VectorDocument(BaseModel):
    """One entry in a vector-store collection."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="'{documentId}_{chunkIndex}' for ingested chunks.")
    content: str
    embedding: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchResult(BaseModel):
    """A similarity-search hit with its raw score (higher is closer)."""

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class CollectionInfo(BaseModel):
    """A backend collection as reported by ``list_collections``."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class CollectionStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_count: int = Field(ge=0)
    dimensions: int | None = None
    index_type: str | None = None


class RerankCandidate(BaseModel):
    """A candidate passed into and returned from the reranker.

    ``original_score`` is set by the rule-based pass to the score the
    candidate came in with.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    score: float = 0.0
    original_score: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class UploadResult(BaseModel):
    """Per-file acknowledgement returned by an upload."""

    model_config = ConfigDict(frozen=True)

    filename: str
    status: ProcessingStatus
    document_id: int | None = None
    error: str | None = None


class SyncSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    vector_store_collections: int = 0
    db_collections: int = 0
    added_to_db: int = 0
    deactivated_in_db: int = 0
    errors: int = 0


class SyncResult(BaseModel):
    """Diff between the Catalog and a vector store's collection list."""

    model_config = ConfigDict(frozen=True)

    added_to_db: list[str] = Field(default_factory=list)
    deactivated_in_db: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    summary: SyncSummary = Field(default_factory=SyncSummary)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_synced(self) -> bool:
        return not self.added_to_db and not self.deactivated_in_db


class CopyStats(BaseModel):
    """Outcome of copying one collection's documents into another.

    ``documents_copied`` counts every new Document row; of those,
    ``documents_queued`` are re-embedded in the background instead of
    having their vectors copied.  Documents without stored text are
    ``documents_skipped``.
    """

    model_config = ConfigDict(frozen=True)

    documents_copied: int = 0
    vectors_copied: int = 0
    documents_queued: int = 0
    documents_skipped: int = 0


class CleansingResult(BaseModel):
    """Cleansed chunk texts, positionally aligned with the input."""

    model_config = ConfigDict(frozen=True)

    cleaned: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class UploadedFile(BaseModel):
    """One file of a multipart upload, read into memory."""

    model_config = ConfigDict(frozen=True)

    filename: str
    mime_type: str | None = None
    data: bytes


class IngestionOverrides(BaseModel):
    """Per-upload strategy choices.

    Each field takes a strategy id, ``"default"`` for the collection's
    configured default, or ``None``.  ``None`` means "no cleansing" for
    cleansing and "system default strategy" for chunking.
    """

    model_config = ConfigDict(frozen=True)

    chunking_strategy_id: int | str | None = USE_COLLECTION_DEFAULT
    cleansing_config_id: int | str | None = USE_COLLECTION_DEFAULT

    @field_validator("chunking_strategy_id", "cleansing_config_id", mode="before")
    @classmethod
    def _id_or_default(cls, value: object) -> object:
        if isinstance(value, str):
            if value == USE_COLLECTION_DEFAULT:
                return value
            if value.strip().isdigit():
                return int(value)
            raise ValueError(f"Expected a strategy id or {USE_COLLECTION_DEFAULT!r}, got {value!r}")
        return value


class CollectionDetail(CollectionWithStore):
    """A collection with its document count and live backend statistics.

    ``stats`` is ``None`` when the backend could not be reached; the reason
    is in ``stats_error``.
    """

    document_count: int = 0
    stats: CollectionStats | None = None
    stats_error: str | None = None
