"""Pydantic request/response schemas for the ragline API.

Catalog entities (:mod:`ragline.models.catalog`) are returned as they are;
this module only holds the envelopes and request bodies that have no
Catalog counterpart.  Request schemas end with ``Request``, response
schemas with ``Response``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from ragline.models.catalog import USE_COLLECTION_DEFAULT, Collection
from ragline.models.rag import (
    CollectionInfo,
    CopyStats,
    IngestionOverrides,
    RerankCandidate,
    UploadResult,
)


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    code: str
    detail: str | None = None


class HealthResponse(BaseModel):
    status: str
    version: str
    catalog_path: str
    embedding_provider: str
    pending_jobs: int = 0


class DeleteResponse(BaseModel):
    id: int
    deleted: bool = True


class VectorStoreTestResponse(BaseModel):
    """Result of connecting to an unsaved vector-store config."""

    ok: bool
    provider: str
    collections: list[CollectionInfo] = Field(default_factory=list)
    error: str | None = None


class DocumentUploadResponse(BaseModel):
    collection_id: int
    results: list[UploadResult]


class SearchRequest(BaseModel):
    collection_id: int
    query: str = Field(..., min_length=1, max_length=4000)
    top_k: int | None = Field(default=None, ge=1, le=200)
    filter: dict[str, Any] | None = Field(
        default=None,
        description="Equality filter on chunk metadata, e.g. {'documentId': 3}.",
    )
    reranking_strategy_id: int | str | None = Field(
        default=None,
        description=f"Strategy id, '{USE_COLLECTION_DEFAULT}' for the collection default, or null.",
    )


class SearchResponse(BaseModel):
    query: str
    collection_id: int
    total: int
    results: list[RerankCandidate]


class RerankRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=4000)
    candidates: list[RerankCandidate]
    reranking_strategy_id: int | None = None


class RerankResponse(BaseModel):
    total: int
    results: list[RerankCandidate]


class CollectionCopyRequest(BaseModel):
    name: str = Field(min_length=1, pattern=r"^[a-zA-Z0-9_-]+$")
    copy_documents: bool = True
    copy_vectors: bool = Field(
        default=True,
        description="Reuse stored embeddings of processed documents instead of re-embedding.",
    )


class CollectionCopyResponse(BaseModel):
    collection: Collection
    stats: CopyStats


class DocumentRegenerateRequest(IngestionOverrides):
    """Strategy overrides resolve against the target collection."""

    collection_id: int
    delete_original: bool = False
