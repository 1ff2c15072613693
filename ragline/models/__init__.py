"""ragline domain models: re-exports all public model classes.

    - catalog.py: durable Catalog entities and their create/update inputs
    - rag.py: values that flow through chunking, embedding, search
      and reranking
"""

from __future__ import annotations

from ragline.models.catalog import (
    USE_COLLECTION_DEFAULT,
    ChunkingStrategyConfig,
    ChunkingStrategyCreate,
    ChunkingStrategyUpdate,
    ChunkingType,
    CleansingConfig,
    CleansingConfigCreate,
    CleansingConfigUpdate,
    CleansingRule,
    Collection,
    CollectionCreate,
    CollectionUpdate,
    CollectionWithStore,
    Document,
    DocumentChunk,
    DocumentCreate,
    DocumentWithChunks,
    ProcessingStatus,
    RerankingStrategyConfig,
    RerankingStrategyCreate,
    RerankingStrategyUpdate,
    RerankingType,
    VectorStoreConfig,
    VectorStoreConfigCreate,
    VectorStoreConfigUpdate,
    VectorStoreType,
    make_chunk_id,
)
from ragline.models.rag import (
    CleansingResult,
    CollectionDetail,
    CollectionInfo,
    CollectionStats,
    IngestionOverrides,
    RerankCandidate,
    SearchResult,
    SyncResult,
    SyncSummary,
    TextChunk,
    UploadResult,
    UploadedFile,
    VectorDocument,
)

__all__ = [
    "USE_COLLECTION_DEFAULT",
    "ChunkingStrategyConfig",
    "ChunkingStrategyCreate",
    "ChunkingStrategyUpdate",
    "ChunkingType",
    "CleansingConfig",
    "CleansingConfigCreate",
    "CleansingConfigUpdate",
    "CleansingResult",
    "CleansingRule",
    "Collection",
    "CollectionCreate",
    "CollectionDetail",
    "CollectionInfo",
    "CollectionStats",
    "CollectionUpdate",
    "CollectionWithStore",
    "Document",
    "DocumentChunk",
    "DocumentCreate",
    "DocumentWithChunks",
    "IngestionOverrides",
    "ProcessingStatus",
    "RerankCandidate",
    "RerankingStrategyConfig",
    "RerankingStrategyCreate",
    "RerankingStrategyUpdate",
    "RerankingType",
    "SearchResult",
    "SyncResult",
    "SyncSummary",
    "TextChunk",
    "UploadResult",
    "UploadedFile",
    "VectorDocument",
    "VectorStoreConfig",
    "VectorStoreConfigCreate",
    "VectorStoreConfigUpdate",
    "VectorStoreType",
    "make_chunk_id",
]
