"""ragline FastAPI application entry point.

Wires providers, services and routes together.  Configuration comes from
``.env`` / environment variables (:class:`Settings`) and the optional
``config/config.yaml``; structured logging is configured at import time.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import asynccontextmanager
from functools import partial
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from ragline import __version__
from ragline.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    register_exception_handlers,
)
from ragline.api.routes import router as api_router
from ragline.config import load_config, settings
from ragline.config.settings import Settings
from ragline.interfaces.embedding_provider import IEmbeddingProvider
from ragline.providers.catalog.sqlite_catalog_provider import SQLiteCatalogProvider
from ragline.providers.embedding.factory import create_embedding_provider
from ragline.providers.llm.factory import create_llm_provider
from ragline.providers.vector_store.factory import create_vector_store
from ragline.services.cleansing.cleansing_service import CleansingService
from ragline.services.collection_service import CollectionService
from ragline.services.collection_sync import CollectionSync
from ragline.services.ingestion.ingestion_pipeline import IngestionPipeline
from ragline.services.ingestion.worker import IngestionQueue
from ragline.services.reranking_service import RerankingService
from ragline.services.search_service import SearchService
from ragline.utils.logging import configure_logging, get_logger

EmbeddingProviderFactory = Callable[[str], IEmbeddingProvider]

# ---------------------------------------------------------------------------
# Module-level config & logging
# ---------------------------------------------------------------------------

config = load_config(settings=settings)

configure_logging(settings)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Dependency assembly
# ---------------------------------------------------------------------------


def _build_all(
    app_settings: Settings,
    embedding_provider_factory: EmbeddingProviderFactory | None = None,
) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    catalog = SQLiteCatalogProvider(db_path=app_settings.catalog_db_path)

    embedding_factory = embedding_provider_factory or partial(
        create_embedding_provider, app_settings
    )
    llm_factory = partial(create_llm_provider, app_settings)

    queue = IngestionQueue(max_concurrency=app_settings.ingestion_concurrency)
    cleansing_service = CleansingService(
        llm_provider_factory=llm_factory,
        llm_batch_size=app_settings.cleansing_llm_batch_size,
    )
    ingestion_pipeline = IngestionPipeline(
        catalog=catalog,
        embedding_provider_factory=embedding_factory,
        cleansing_service=cleansing_service,
        queue=queue,
        vector_store_factory=create_vector_store,
        max_upload_bytes=app_settings.max_upload_bytes,
    )
    reranking_service = RerankingService(catalog, llm_provider_factory=llm_factory)
    search_service = SearchService(
        catalog=catalog,
        embedding_provider_factory=embedding_factory,
        reranking_service=reranking_service,
        vector_store_factory=create_vector_store,
        default_top_k=app_settings.search_default_top_k,
    )

    return {
        "catalog": catalog,
        "vector_store_factory": create_vector_store,
        "ingestion_queue": queue,
        "ingestion_pipeline": ingestion_pipeline,
        "collection_service": CollectionService(catalog, create_vector_store, ingestion_pipeline),
        "collection_sync": CollectionSync(catalog, create_vector_store),
        "reranking_service": reranking_service,
        "search_service": search_service,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Build components and create the Catalog schema; drain ingestion on shutdown."""
    app_settings: Settings = application.state.settings
    components = _build_all(
        app_settings,
        embedding_provider_factory=application.state.embedding_provider_factory,
    )
    for key, value in components.items():
        setattr(application.state, key, value)

    await components["catalog"].initialize()

    _logger.info(
        "app_startup",
        version=__version__,
        environment=app_settings.app_env,
        catalog=app_settings.catalog_db_path,
        embedding_provider=app_settings.embedding_provider,
        ingestion_concurrency=app_settings.ingestion_concurrency,
    )

    yield

    queue: IngestionQueue = components["ingestion_queue"]
    pending = queue.pending
    await queue.shutdown()
    _logger.info("app_shutdown", drained_jobs=pending)


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    app_settings: Settings | None = None,
    embedding_provider_factory: EmbeddingProviderFactory | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Parameters
    ----------
    app_settings:
        Settings to run with; the module-level ``settings`` when omitted.
    embedding_provider_factory:
        Replaces the settings-selected embedding provider, e.g. with a
        deterministic embedder in tests.
    """
    application = FastAPI(
        title="ragline API",
        version=__version__,
        description=(
            "Ingest documents into vector-store collections (extract, chunk, "
            "cleanse, embed) and query them with similarity search and reranking."
        ),
        lifespan=_lifespan,
    )
    application.state.settings = app_settings or settings
    application.state.embedding_provider_factory = embedding_provider_factory

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=config.get("app", {}).get("cors_origins"))

    register_exception_handlers(application)
    application.include_router(api_router)
    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "ragline.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
