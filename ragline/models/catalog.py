"""Catalog data models: the durable, relational view of the RAG index.

The Catalog records which vector stores exist, which collections live in
them, which documents were uploaded into each collection, and the chunks
each document was split into.  Named parameter sets (chunking, cleansing,
reranking) are stored alongside so collections and uploads can refer to
them by id.

The Catalog and the vector store are *eventually* consistent: a
collection row is expected to have a same-named collection in the backend,
but nothing enforces it transactionally.
:class:`~ragline.services.collection_sync.CollectionSync` reconciles the
two.

Entity models are frozen pydantic models built by the catalog provider
from database rows.  ``*Create`` models carry the fields a caller supplies
when inserting; ``*Update`` models have every field optional and are
applied with ``model_dump(exclude_unset=True)``.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Sentinel used in upload/reprocess overrides meaning "whatever the
# collection has configured".  Distinct from ``None`` (= explicitly none).
USE_COLLECTION_DEFAULT = "default"


def make_chunk_id(document_id: int, chunk_index: int) -> str:
    """Return the vector-store id of a chunk.

    The id depends only on ``(document_id, chunk_index)`` so it can be
    rebuilt from Catalog rows without any other state, and re-upserting a
    reprocessed document overwrites its previous vectors.
    """
    return f"{document_id}_{chunk_index}"


def _not_null(value: Any) -> Any:
    """Reject an explicit ``null`` for a column that has no NULL state.

    ``*Update`` fields default to ``None`` meaning "leave unchanged"; the
    default is never validated, so only a caller-supplied ``None`` lands
    here.
    """
    if value is None:
        raise ValueError("may be omitted but not set to null")
    return value


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class VectorStoreType(str, Enum):
    """Backend discriminator used by the vector-store factory."""

    CHROMADB = "chromadb"
    FAISS = "faiss"
    MEMORY = "memory"


class ChunkingType(str, Enum):
    FIXED_SIZE = "fixed_size"
    SENTENCE = "sentence"
    PARAGRAPH = "paragraph"
    SLIDING_WINDOW = "sliding_window"


class RerankingType(str, Enum):
    NONE = "none"
    RULE_BASED = "rule_based"
    MODEL_BASED = "model_based"
    HYBRID = "hybrid"


class ProcessingStatus(str, Enum):
    """Document processing state machine.

    ``pending -> processing -> completed | failed``; a reprocess moves
    ``completed | failed -> processing``.  Nothing leaves ``processing``
    except to ``completed`` or ``failed``.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def can_transition_to(self, target: ProcessingStatus) -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[ProcessingStatus, frozenset[ProcessingStatus]] = {
    ProcessingStatus.PENDING: frozenset({ProcessingStatus.PROCESSING}),
    ProcessingStatus.PROCESSING: frozenset(
        {ProcessingStatus.COMPLETED, ProcessingStatus.FAILED}
    ),
    ProcessingStatus.COMPLETED: frozenset({ProcessingStatus.PROCESSING}),
    ProcessingStatus.FAILED: frozenset({ProcessingStatus.PROCESSING}),
}


# ---------------------------------------------------------------------------
# VectorStoreConfig
# ---------------------------------------------------------------------------


class VectorStoreConfig(BaseModel):
    """Connection parameters for one vector-store backend."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str = Field(description="Unique display name.")
    type: VectorStoreType = Field(description="Backend discriminator.")
    connection_string: str | None = Field(
        default=None,
        description="URL (http[s]://host:port) or filesystem path, backend-specific.",
    )
    api_key: str | None = Field(default=None, description="Backend credential, if any.")
    settings: dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True
    is_default: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class VectorStoreConfigCreate(BaseModel):
    name: str = Field(min_length=1)
    type: VectorStoreType
    connection_string: str | None = None
    api_key: str | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True
    is_default: bool = False


class VectorStoreConfigUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    connection_string: str | None = None
    api_key: str | None = None
    settings: dict[str, Any] | None = None
    enabled: bool | None = None
    is_default: bool | None = None

    @field_validator("name", "enabled", "is_default")
    @classmethod
    def _required(cls, value: Any) -> Any:
        return _not_null(value)


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


class Collection(BaseModel):
    """A named partition inside a vector store, mirrored in the Catalog."""

    model_config = ConfigDict(frozen=True)

    id: int
    vector_store_id: int
    name: str = Field(description="Unique within its vector store; also the backend name.")
    description: str | None = None
    embedding_model: str
    embedding_dimensions: int = Field(gt=0, description="Immutable after creation.")
    is_active: bool = True
    default_chunking_strategy_id: int | None = None
    default_cleansing_config_id: int | None = None
    default_reranking_strategy_id: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CollectionWithStore(Collection):
    """A collection joined with its store and default strategy names."""

    vector_store_name: str
    vector_store_type: VectorStoreType
    chunking_strategy_name: str | None = None
    cleansing_config_name: str | None = None
    reranking_strategy_name: str | None = None


class CollectionCreate(BaseModel):
    vector_store_id: int
    name: str = Field(min_length=1, pattern=r"^[a-zA-Z0-9_-]+$")
    description: str | None = None
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = Field(default=1536, gt=0)
    is_active: bool = True
    default_chunking_strategy_id: int | None = None
    default_cleansing_config_id: int | None = None
    default_reranking_strategy_id: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class CollectionUpdate(BaseModel):
    """Mutable collection fields.  Name, store and dimensions are fixed."""

    model_config = ConfigDict(extra="forbid")

    description: str | None = None
    is_active: bool | None = None
    default_chunking_strategy_id: int | None = None
    default_cleansing_config_id: int | None = None
    default_reranking_strategy_id: int | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("is_active")
    @classmethod
    def _required(cls, value: Any) -> Any:
        return _not_null(value)


# ---------------------------------------------------------------------------
# Document / DocumentChunk
# ---------------------------------------------------------------------------


class Document(BaseModel):
    """One uploaded file and its processing state."""

    model_config = ConfigDict(frozen=True)

    id: int
    collection_id: int
    title: str
    filename: str
    mime_type: str | None = None
    file_size: int = Field(default=0, ge=0)
    content_hash: str = Field(description="SHA-256 hex digest of the uploaded bytes.")
    content_type: str = Field(default="unknown", description="Derived label, e.g. 'pdf'.")
    raw_content: str | None = Field(default=None, description="Extracted text; null until processed.")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Includes 'processingConfig' with the parameters actually used.",
    )
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    error_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DocumentCreate(BaseModel):
    collection_id: int
    title: str
    filename: str
    mime_type: str | None = None
    file_size: int = Field(default=0, ge=0)
    content_hash: str
    content_type: str = "unknown"
    raw_content: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class DocumentChunk(BaseModel):
    """A stored chunk of a document; ``chunk_index`` is dense and 0-based."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    document_id: int
    chunk_index: int = Field(ge=0)
    content: str
    cleaned_content: str | None = None
    embedding: list[float] | None = None
    token_count: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def vector_id(self) -> str:
        return make_chunk_id(self.document_id, self.chunk_index)


class DocumentWithChunks(Document):
    chunks: list[DocumentChunk] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Strategy configs
# ---------------------------------------------------------------------------


class ChunkingStrategyConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    type: ChunkingType
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    separator: str | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ChunkingStrategyCreate(BaseModel):
    name: str = Field(min_length=1)
    type: ChunkingType = ChunkingType.FIXED_SIZE
    chunk_size: int = 1000
    chunk_overlap: int = 200
    separator: str | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False


class ChunkingStrategyUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    type: ChunkingType | None = None
    chunk_size: int | None = None
    chunk_overlap: int | None = None
    separator: str | None = None
    settings: dict[str, Any] | None = None
    is_default: bool | None = None

    @field_validator("name", "type", "chunk_size", "chunk_overlap", "is_default")
    @classmethod
    def _required(cls, value: Any) -> Any:
        return _not_null(value)


class CleansingRule(BaseModel):
    """A user-supplied regex substitution applied after the built-in rules."""

    model_config = ConfigDict(frozen=True)

    pattern: str
    replacement: str = ""
    flags: str = Field(default="", description="Subset of 'imsxg'; 'g' is implied.")

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"Invalid regex pattern {value!r}: {exc}") from exc
        return value

    @field_validator("flags")
    @classmethod
    def _known_flags(cls, value: str) -> str:
        unknown = set(value) - set("imsxg")
        if unknown:
            raise ValueError(f"Unsupported regex flags: {''.join(sorted(unknown))}")
        return value


class CleansingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    remove_headers: bool = True
    remove_footers: bool = True
    remove_page_numbers: bool = True
    normalize_whitespace: bool = True
    fix_encoding: bool = True
    remove_urls: bool = False
    remove_emails: bool = False
    custom_rules: list[CleansingRule] = Field(default_factory=list)
    llm_model: str | None = Field(default=None, description="Model name for the LLM rewrite pass.")
    cleansing_prompt: str | None = Field(
        default=None, description="Prompt template with a '{text}' placeholder."
    )
    is_default: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CleansingConfigCreate(BaseModel):
    name: str = Field(min_length=1)
    remove_headers: bool = True
    remove_footers: bool = True
    remove_page_numbers: bool = True
    normalize_whitespace: bool = True
    fix_encoding: bool = True
    remove_urls: bool = False
    remove_emails: bool = False
    custom_rules: list[CleansingRule] = Field(default_factory=list)
    llm_model: str | None = None
    cleansing_prompt: str | None = None
    is_default: bool = False


class CleansingConfigUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    remove_headers: bool | None = None
    remove_footers: bool | None = None
    remove_page_numbers: bool | None = None
    normalize_whitespace: bool | None = None
    fix_encoding: bool | None = None
    remove_urls: bool | None = None
    remove_emails: bool | None = None
    custom_rules: list[CleansingRule] | None = None
    llm_model: str | None = None
    cleansing_prompt: str | None = None
    is_default: bool | None = None

    @field_validator(
        "name",
        "remove_headers",
        "remove_footers",
        "remove_page_numbers",
        "normalize_whitespace",
        "fix_encoding",
        "remove_urls",
        "remove_emails",
        "is_default",
    )
    @classmethod
    def _required(cls, value: Any) -> Any:
        return _not_null(value)


class RerankingStrategyConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    type: RerankingType = RerankingType.NONE
    reranking_model: str | None = None
    top_k: int | None = Field(default=None, gt=0)
    min_score: float | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RerankingStrategyCreate(BaseModel):
    name: str = Field(min_length=1)
    type: RerankingType = RerankingType.NONE
    reranking_model: str | None = None
    top_k: int | None = Field(default=None, gt=0)
    min_score: float | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False


class RerankingStrategyUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    type: RerankingType | None = None
    reranking_model: str | None = None
    top_k: int | None = Field(default=None, gt=0)
    min_score: float | None = None
    settings: dict[str, Any] | None = None
    is_default: bool | None = None

    @field_validator("name", "type", "is_default")
    @classmethod
    def _required(cls, value: Any) -> Any:
        return _not_null(value)
