"""FastAPI routes for ragline.

Every route is mounted under ``/api/v1``.  Services are read from
``app.state`` (populated by ``_build_all`` in :mod:`ragline.main`) through
``Annotated[..., Depends(...)]`` aliases, so tests can build an app with
their own components.

    /health                                 GET
    /vector-stores                          GET POST
    /vector-stores/test                     POST    try an unsaved config
    /vector-stores/{id}                     GET PUT DELETE
    /vector-stores/{id}/sync                GET (check) POST (apply)
    /collections                            GET POST
    /collections/{id}                       GET PUT DELETE
    /collections/{id}/copy                  POST    new collection from an existing one
    /collections/{id}/documents             GET
    /documents                              POST    multipart upload
    /documents/{id}                         GET DELETE
    /documents/{id}/reprocess               POST
    /documents/{id}/regenerate              POST    re-ingest as a new document
    /search                                 POST
    /rerank                                 POST
    /chunking-strategies[/{id}]             CRUD
    /cleansing-configs[/{id}]               CRUD
    /reranking-strategies[/{id}]            CRUD

Application errors are raised as :class:`RaglineError` subclasses and
turned into JSON by :class:`~ragline.api.middleware.ErrorHandlingMiddleware`.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, TypeVar

import structlog
from fastapi import APIRouter, Body, Depends, File, Form, Request, UploadFile

from ragline import __version__
from ragline.api.schemas import (
    CollectionCopyRequest,
    CollectionCopyResponse,
    DeleteResponse,
    DocumentRegenerateRequest,
    DocumentUploadResponse,
    ErrorResponse,
    HealthResponse,
    RerankRequest,
    RerankResponse,
    SearchRequest,
    SearchResponse,
    VectorStoreTestResponse,
)
from ragline.config.settings import Settings
from ragline.interfaces.catalog_provider import ICatalogProvider
from ragline.interfaces.vector_store_provider import IVectorStoreProvider
from ragline.models.catalog import (
    USE_COLLECTION_DEFAULT,
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
    DocumentWithChunks,
    RerankingStrategyConfig,
    RerankingStrategyCreate,
    RerankingStrategyUpdate,
    VectorStoreConfig,
    VectorStoreConfigCreate,
    VectorStoreConfigUpdate,
)
from ragline.models.rag import CollectionDetail, IngestionOverrides, SyncResult, UploadedFile
from ragline.services.collection_service import CollectionService
from ragline.services.collection_sync import CollectionSync
from ragline.services.ingestion.ingestion_pipeline import IngestionPipeline
from ragline.services.ingestion.worker import IngestionQueue
from ragline.services.reranking_service import RerankingService
from ragline.services.search_service import SearchService
from ragline.utils.errors import BackendError, ConflictError, NotFoundError, ValidationError
from ragline.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_T = TypeVar("_T")

router = APIRouter(prefix="/api/v1")

# Uploads are read in 64 KB pieces so an oversized file is cut off after
# one piece past the limit instead of being buffered whole.
_UPLOAD_CHUNK_SIZE = 64 * 1024

_ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _get_catalog(request: Request) -> ICatalogProvider:
    return request.app.state.catalog


def _get_vector_store_factory(request: Request) -> Callable[[VectorStoreConfig], IVectorStoreProvider]:
    return request.app.state.vector_store_factory


def _get_collection_service(request: Request) -> CollectionService:
    return request.app.state.collection_service


def _get_collection_sync(request: Request) -> CollectionSync:
    return request.app.state.collection_sync


def _get_ingestion_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.ingestion_pipeline


def _get_ingestion_queue(request: Request) -> IngestionQueue:
    return request.app.state.ingestion_queue


def _get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


def _get_reranking_service(request: Request) -> RerankingService:
    return request.app.state.reranking_service


SettingsDep = Annotated[Settings, Depends(_get_settings)]
CatalogDep = Annotated[ICatalogProvider, Depends(_get_catalog)]
VectorStoreFactoryDep = Annotated[
    Callable[[VectorStoreConfig], IVectorStoreProvider], Depends(_get_vector_store_factory)
]
CollectionServiceDep = Annotated[CollectionService, Depends(_get_collection_service)]
CollectionSyncDep = Annotated[CollectionSync, Depends(_get_collection_sync)]
PipelineDep = Annotated[IngestionPipeline, Depends(_get_ingestion_pipeline)]
QueueDep = Annotated[IngestionQueue, Depends(_get_ingestion_queue)]
SearchServiceDep = Annotated[SearchService, Depends(_get_search_service)]
RerankingServiceDep = Annotated[RerankingService, Depends(_get_reranking_service)]


def _found(entity: _T | None, kind: str, entity_id: int) -> _T:
    if entity is None:
        raise NotFoundError(message=f"{kind} #{entity_id} not found")
    return entity


def _form_override(raw: str | None) -> int | str | None:
    """Map a multipart override field to an id, the default sentinel, or ``None``."""
    if raw is None or raw == USE_COLLECTION_DEFAULT:
        return USE_COLLECTION_DEFAULT
    value = raw.strip()
    if value.lower() in ("", "none", "null"):
        return None
    if value.isdigit():
        return int(value)
    raise ValidationError(
        message=f"Expected a strategy id, '{USE_COLLECTION_DEFAULT}' or 'none', got {raw!r}"
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Liveness check")
async def health_check(app_settings: SettingsDep, queue: QueueDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        catalog_path=app_settings.catalog_db_path,
        embedding_provider=app_settings.embedding_provider,
        pending_jobs=queue.pending,
    )


# ---------------------------------------------------------------------------
# Vector stores
# ---------------------------------------------------------------------------


@router.get("/vector-stores", response_model=list[VectorStoreConfig])
async def list_vector_stores(catalog: CatalogDep) -> list[VectorStoreConfig]:
    return await catalog.list_vector_stores()


@router.post(
    "/vector-stores",
    response_model=VectorStoreConfig,
    status_code=201,
    responses=_ERRORS,
)
async def create_vector_store(body: VectorStoreConfigCreate, catalog: CatalogDep) -> VectorStoreConfig:
    store = await catalog.create_vector_store(body)
    _logger.info("vector_store_created", vector_store=store.name, type=store.type.value)
    return store


@router.post(
    "/vector-stores/test",
    response_model=VectorStoreTestResponse,
    summary="Connect to an unsaved vector-store config and list its collections",
)
async def test_vector_store(
    body: VectorStoreConfigCreate,
    factory: VectorStoreFactoryDep,
) -> VectorStoreTestResponse:
    provider = body.type.value
    try:
        async with factory(body) as store:  # type: ignore[arg-type]
            collections = await store.list_collections()
    except BackendError as exc:
        _logger.warning("vector_store_test_failed", type=provider, error=exc.message)
        return VectorStoreTestResponse(ok=False, provider=provider, error=exc.message)
    return VectorStoreTestResponse(ok=True, provider=provider, collections=collections)


@router.get("/vector-stores/{store_id}", response_model=VectorStoreConfig, responses=_ERRORS)
async def get_vector_store(store_id: int, catalog: CatalogDep) -> VectorStoreConfig:
    return _found(await catalog.get_vector_store(store_id), "Vector store", store_id)


@router.put("/vector-stores/{store_id}", response_model=VectorStoreConfig, responses=_ERRORS)
async def update_vector_store(
    store_id: int,
    body: VectorStoreConfigUpdate,
    catalog: CatalogDep,
) -> VectorStoreConfig:
    return _found(await catalog.update_vector_store(store_id, body), "Vector store", store_id)


@router.delete("/vector-stores/{store_id}", response_model=DeleteResponse, responses=_ERRORS)
async def delete_vector_store(store_id: int, catalog: CatalogDep) -> DeleteResponse:
    if not await catalog.delete_vector_store(store_id):
        raise NotFoundError(message=f"Vector store #{store_id} not found")
    return DeleteResponse(id=store_id)


@router.post("/vector-stores/{store_id}/sync", response_model=SyncResult, responses=_ERRORS)
async def sync_vector_store(store_id: int, sync: CollectionSyncDep) -> SyncResult:
    return await sync.sync(store_id)


@router.get("/vector-stores/{store_id}/sync", response_model=SyncResult, responses=_ERRORS)
async def check_vector_store_sync(store_id: int, sync: CollectionSyncDep) -> SyncResult:
    return await sync.check_status(store_id)


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


@router.get("/collections", response_model=list[CollectionWithStore])
async def list_collections(
    service: CollectionServiceDep,
    vector_store_id: int | None = None,
) -> list[CollectionWithStore]:
    return await service.list_collections(vector_store_id)


@router.post("/collections", response_model=Collection, status_code=201, responses=_ERRORS)
async def create_collection(body: CollectionCreate, service: CollectionServiceDep) -> Collection:
    return await service.create_collection(body)


@router.get("/collections/{collection_id}", response_model=CollectionDetail, responses=_ERRORS)
async def get_collection(collection_id: int, service: CollectionServiceDep) -> CollectionDetail:
    return await service.get_collection(collection_id)


@router.put("/collections/{collection_id}", response_model=Collection, responses=_ERRORS)
async def update_collection(
    collection_id: int,
    body: CollectionUpdate,
    service: CollectionServiceDep,
) -> Collection:
    return await service.update_collection(collection_id, body)


@router.delete("/collections/{collection_id}", response_model=DeleteResponse, responses=_ERRORS)
async def delete_collection(collection_id: int, service: CollectionServiceDep) -> DeleteResponse:
    await service.delete_collection(collection_id)
    return DeleteResponse(id=collection_id)


@router.post(
    "/collections/{collection_id}/copy",
    response_model=CollectionCopyResponse,
    status_code=201,
    responses=_ERRORS,
)
async def copy_collection(
    collection_id: int,
    body: CollectionCopyRequest,
    service: CollectionServiceDep,
) -> CollectionCopyResponse:
    collection, stats = await service.copy_collection(
        collection_id,
        body.name,
        copy_documents=body.copy_documents,
        copy_vectors=body.copy_vectors,
    )
    return CollectionCopyResponse(collection=collection, stats=stats)


@router.get(
    "/collections/{collection_id}/documents",
    response_model=list[Document],
    response_model_exclude={"raw_content"},
    responses=_ERRORS,
)
async def list_collection_documents(collection_id: int, catalog: CatalogDep) -> list[Document]:
    _found(await catalog.get_collection(collection_id), "Collection", collection_id)
    return await catalog.list_documents(collection_id)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/documents",
    response_model=DocumentUploadResponse,
    status_code=202,
    responses=_ERRORS,
    summary="Upload files into a collection; processing continues in the background",
)
async def upload_documents(
    pipeline: PipelineDep,
    app_settings: SettingsDep,
    collection_id: Annotated[int, Form()],
    files: Annotated[list[UploadFile], File()],
    chunking_strategy_id: Annotated[str | None, Form()] = None,
    cleansing_config_id: Annotated[str | None, Form()] = None,
) -> DocumentUploadResponse:
    overrides = IngestionOverrides(
        chunking_strategy_id=_form_override(chunking_strategy_id),
        cleansing_config_id=_form_override(cleansing_config_id),
    )

    uploads: list[UploadedFile] = []
    for upload in files:
        pieces: list[bytes] = []
        total = 0
        while total <= app_settings.max_upload_bytes:
            piece = await upload.read(_UPLOAD_CHUNK_SIZE)
            if not piece:
                break
            pieces.append(piece)
            total += len(piece)
        uploads.append(
            UploadedFile(
                filename=upload.filename or "upload",
                mime_type=upload.content_type,
                data=b"".join(pieces),
            )
        )

    results = await pipeline.submit_uploads(collection_id, uploads, overrides)
    return DocumentUploadResponse(collection_id=collection_id, results=results)


@router.get("/documents/{document_id}", response_model=DocumentWithChunks, responses=_ERRORS)
async def get_document(document_id: int, pipeline: PipelineDep) -> DocumentWithChunks:
    return await pipeline.get_document(document_id)


@router.delete("/documents/{document_id}", response_model=DeleteResponse, responses=_ERRORS)
async def delete_document(document_id: int, pipeline: PipelineDep) -> DeleteResponse:
    await pipeline.delete_document(document_id)
    return DeleteResponse(id=document_id)


@router.post(
    "/documents/{document_id}/reprocess",
    response_model=Document,
    response_model_exclude={"raw_content"},
    status_code=202,
    responses=_ERRORS,
)
async def reprocess_document(
    document_id: int,
    pipeline: PipelineDep,
    body: Annotated[IngestionOverrides | None, Body()] = None,
) -> Document:
    return await pipeline.reprocess_document(document_id, body)


@router.post(
    "/documents/{document_id}/regenerate",
    response_model=Document,
    response_model_exclude={"raw_content"},
    status_code=202,
    responses=_ERRORS,
)
async def regenerate_document(
    document_id: int,
    body: DocumentRegenerateRequest,
    pipeline: PipelineDep,
) -> Document:
    return await pipeline.regenerate_document(
        document_id,
        body.collection_id,
        body,
        delete_original=body.delete_original,
    )


# ---------------------------------------------------------------------------
# Search / rerank
# ---------------------------------------------------------------------------


@router.post("/search", response_model=SearchResponse, responses=_ERRORS)
async def search(body: SearchRequest, service: SearchServiceDep) -> SearchResponse:
    results = await service.search(
        collection_id=body.collection_id,
        query=body.query,
        top_k=body.top_k,
        filter=body.filter,
        reranking_strategy_id=body.reranking_strategy_id,
    )
    return SearchResponse(
        query=body.query,
        collection_id=body.collection_id,
        total=len(results),
        results=results,
    )


@router.post("/rerank", response_model=RerankResponse, responses=_ERRORS)
async def rerank(body: RerankRequest, service: RerankingServiceDep) -> RerankResponse:
    results = await service.rerank_with_strategy(
        body.query, body.candidates, body.reranking_strategy_id
    )
    return RerankResponse(total=len(results), results=results)


# ---------------------------------------------------------------------------
# Strategy CRUD
# ---------------------------------------------------------------------------


async def _refuse_if_referenced(catalog: ICatalogProvider, column: str, strategy_id: int) -> None:
    users = await catalog.collections_using_strategy(column, strategy_id)
    if users:
        raise ConflictError(
            message=f"Strategy #{strategy_id} is the default of collection(s): {', '.join(users)}"
        )


@router.get("/chunking-strategies", response_model=list[ChunkingStrategyConfig])
async def list_chunking_strategies(catalog: CatalogDep) -> list[ChunkingStrategyConfig]:
    return await catalog.list_chunking_strategies()


@router.post(
    "/chunking-strategies",
    response_model=ChunkingStrategyConfig,
    status_code=201,
    responses=_ERRORS,
)
async def create_chunking_strategy(
    body: ChunkingStrategyCreate, catalog: CatalogDep
) -> ChunkingStrategyConfig:
    return await catalog.create_chunking_strategy(body)


@router.get(
    "/chunking-strategies/{strategy_id}",
    response_model=ChunkingStrategyConfig,
    responses=_ERRORS,
)
async def get_chunking_strategy(strategy_id: int, catalog: CatalogDep) -> ChunkingStrategyConfig:
    return _found(await catalog.get_chunking_strategy(strategy_id), "Chunking strategy", strategy_id)


@router.put(
    "/chunking-strategies/{strategy_id}",
    response_model=ChunkingStrategyConfig,
    responses=_ERRORS,
)
async def update_chunking_strategy(
    strategy_id: int,
    body: ChunkingStrategyUpdate,
    catalog: CatalogDep,
) -> ChunkingStrategyConfig:
    return _found(
        await catalog.update_chunking_strategy(strategy_id, body), "Chunking strategy", strategy_id
    )


@router.delete(
    "/chunking-strategies/{strategy_id}",
    response_model=DeleteResponse,
    responses=_ERRORS,
)
async def delete_chunking_strategy(strategy_id: int, catalog: CatalogDep) -> DeleteResponse:
    await _refuse_if_referenced(catalog, "default_chunking_strategy_id", strategy_id)
    if not await catalog.delete_chunking_strategy(strategy_id):
        raise NotFoundError(message=f"Chunking strategy #{strategy_id} not found")
    return DeleteResponse(id=strategy_id)


@router.get("/cleansing-configs", response_model=list[CleansingConfig])
async def list_cleansing_configs(catalog: CatalogDep) -> list[CleansingConfig]:
    return await catalog.list_cleansing_configs()


@router.post(
    "/cleansing-configs",
    response_model=CleansingConfig,
    status_code=201,
    responses=_ERRORS,
)
async def create_cleansing_config(body: CleansingConfigCreate, catalog: CatalogDep) -> CleansingConfig:
    return await catalog.create_cleansing_config(body)


@router.get("/cleansing-configs/{config_id}", response_model=CleansingConfig, responses=_ERRORS)
async def get_cleansing_config(config_id: int, catalog: CatalogDep) -> CleansingConfig:
    return _found(await catalog.get_cleansing_config(config_id), "Cleansing config", config_id)


@router.put("/cleansing-configs/{config_id}", response_model=CleansingConfig, responses=_ERRORS)
async def update_cleansing_config(
    config_id: int,
    body: CleansingConfigUpdate,
    catalog: CatalogDep,
) -> CleansingConfig:
    return _found(
        await catalog.update_cleansing_config(config_id, body), "Cleansing config", config_id
    )


@router.delete("/cleansing-configs/{config_id}", response_model=DeleteResponse, responses=_ERRORS)
async def delete_cleansing_config(config_id: int, catalog: CatalogDep) -> DeleteResponse:
    await _refuse_if_referenced(catalog, "default_cleansing_config_id", config_id)
    if not await catalog.delete_cleansing_config(config_id):
        raise NotFoundError(message=f"Cleansing config #{config_id} not found")
    return DeleteResponse(id=config_id)


@router.get("/reranking-strategies", response_model=list[RerankingStrategyConfig])
async def list_reranking_strategies(catalog: CatalogDep) -> list[RerankingStrategyConfig]:
    return await catalog.list_reranking_strategies()


@router.post(
    "/reranking-strategies",
    response_model=RerankingStrategyConfig,
    status_code=201,
    responses=_ERRORS,
)
async def create_reranking_strategy(
    body: RerankingStrategyCreate, catalog: CatalogDep
) -> RerankingStrategyConfig:
    return await catalog.create_reranking_strategy(body)


@router.get(
    "/reranking-strategies/{strategy_id}",
    response_model=RerankingStrategyConfig,
    responses=_ERRORS,
)
async def get_reranking_strategy(strategy_id: int, catalog: CatalogDep) -> RerankingStrategyConfig:
    return _found(
        await catalog.get_reranking_strategy(strategy_id), "Reranking strategy", strategy_id
    )


@router.put(
    "/reranking-strategies/{strategy_id}",
    response_model=RerankingStrategyConfig,
    responses=_ERRORS,
)
async def update_reranking_strategy(
    strategy_id: int,
    body: RerankingStrategyUpdate,
    catalog: CatalogDep,
) -> RerankingStrategyConfig:
    return _found(
        await catalog.update_reranking_strategy(strategy_id, body), "Reranking strategy", strategy_id
    )


@router.delete(
    "/reranking-strategies/{strategy_id}",
    response_model=DeleteResponse,
    responses=_ERRORS,
)
async def delete_reranking_strategy(strategy_id: int, catalog: CatalogDep) -> DeleteResponse:
    await _refuse_if_referenced(catalog, "default_reranking_strategy_id", strategy_id)
    if not await catalog.delete_reranking_strategy(strategy_id):
        raise NotFoundError(message=f"Reranking strategy #{strategy_id} not found")
    return DeleteResponse(id=strategy_id)
