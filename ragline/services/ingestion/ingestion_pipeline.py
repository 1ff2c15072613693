"""Document ingestion: upload, background processing, reprocess, delete.

An upload is acknowledged as soon as a ``pending`` Document row exists for
each file.  The heavy work runs on the :class:`IngestionQueue`:

    extract text -> chunk -> cleanse (optional) -> embed
        -> upsert vectors -> replace chunk rows -> completed

Any failure in that sequence marks the document ``failed`` with the error
message; nothing is retried.  The Document's ``processing_status`` is the
only synchronization point visible to callers, and jobs for the same
document are serialized with a :class:`KeyedLock`.

Every Catalog write is an UPDATE by id, so a job that is still running
when its document is deleted finishes without resurrecting it.
"""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Callable
from pathlib import PurePath
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict

from ragline.interfaces.catalog_provider import ICatalogProvider
from ragline.interfaces.embedding_provider import IEmbeddingProvider
from ragline.interfaces.vector_store_provider import IVectorStoreProvider
from ragline.models.catalog import (
    USE_COLLECTION_DEFAULT,
    ChunkingStrategyConfig,
    ChunkingType,
    CleansingConfig,
    Collection,
    Document,
    DocumentChunk,
    DocumentCreate,
    DocumentWithChunks,
    ProcessingStatus,
    VectorStoreConfig,
    make_chunk_id,
)
from ragline.models.rag import (
    CopyStats,
    IngestionOverrides,
    UploadedFile,
    UploadResult,
    VectorDocument,
)
from ragline.providers.vector_store.factory import create_vector_store
from ragline.services.chunking.factory import chunker_from_config
from ragline.services.cleansing.cleansing_service import CleansingService
from ragline.services.ingestion.text_extractor import TextExtractor, detect_content_type
from ragline.services.ingestion.worker import IngestionQueue
from ragline.utils.concurrency import KeyedLock
from ragline.utils.errors import (
    BackendError,
    ConflictError,
    EmbeddingError,
    NotFoundError,
    ProcessingError,
    RaglineError,
    ValidationError,
)

logger = structlog.get_logger(logger_name=__name__)

# Used when neither the upload nor the collection names a chunking strategy
# and the Catalog has no default.  id 0 never exists in the Catalog.
BUILTIN_CHUNKING_STRATEGY = ChunkingStrategyConfig(
    id=0,
    name="builtin_fixed_size",
    type=ChunkingType.FIXED_SIZE,
    chunk_size=1000,
    chunk_overlap=200,
)


class ProcessingOptions(BaseModel):
    """Resolved parameters for one processing run.

    ``claimed`` is set when the caller already moved the document to
    ``processing`` (reprocess does this synchronously).
    """

    model_config = ConfigDict(frozen=True)

    chunking: ChunkingStrategyConfig = BUILTIN_CHUNKING_STRATEGY
    cleansing: CleansingConfig | None = None
    claimed: bool = False


class IngestionPipeline:
    """Orchestrates document ingestion against the Catalog and vector stores.

    Parameters
    ----------
    catalog:
        Durable record of collections, documents and chunks.
    embedding_provider_factory:
        Called with a collection's ``embedding_model``.
    cleansing_service:
        Applied when a cleansing config resolves for the upload.
    queue:
        Background runner for processing jobs.
    text_extractor:
        Bytes-to-text conversion; a default instance when omitted.
    vector_store_factory:
        Builds an unconnected provider from a :class:`VectorStoreConfig`.
    max_upload_bytes:
        Files larger than this are rejected per file.
    """

    def __init__(
        self,
        catalog: ICatalogProvider,
        embedding_provider_factory: Callable[[str], IEmbeddingProvider],
        cleansing_service: CleansingService,
        queue: IngestionQueue,
        text_extractor: TextExtractor | None = None,
        vector_store_factory: Callable[[VectorStoreConfig], IVectorStoreProvider] = create_vector_store,
        max_upload_bytes: int = 50 * 1024 * 1024,
    ) -> None:
        self._catalog = catalog
        self._embedding_provider_factory = embedding_provider_factory
        self._cleansing = cleansing_service
        self._queue = queue
        self._extractor = text_extractor or TextExtractor()
        self._vector_store_factory = vector_store_factory
        self._max_upload_bytes = max_upload_bytes
        self._job_locks = KeyedLock()
        self._admission_locks = KeyedLock()

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def submit_uploads(
        self,
        collection_id: int,
        files: list[UploadedFile],
        overrides: IngestionOverrides | None = None,
    ) -> list[UploadResult]:
        """Create a ``pending`` Document per file and queue its processing.

        Returns one :class:`UploadResult` per input file, in input order.

        Raises
        ------
        NotFoundError
            If the collection, or an explicitly referenced strategy, does
            not exist.  Raised before any Document row is created.
        """
        collection = await self._catalog.get_collection(collection_id)
        if collection is None:
            raise NotFoundError(message=f"Collection #{collection_id} not found")

        reason = await self._preflight(collection)
        if reason is not None:
            logger.warning(
                "upload_rejected",
                collection=collection.name,
                files=len(files),
                reason=reason,
            )
            return [
                UploadResult(filename=f.filename, status=ProcessingStatus.FAILED, error=reason)
                for f in files
            ]

        options = await self._resolve_options(collection, overrides or IngestionOverrides())

        results: list[UploadResult] = []
        for upload in files:
            results.append(await self._accept_file(collection, upload, options))

        logger.info(
            "upload_accepted",
            collection=collection.name,
            files=len(files),
            queued=sum(1 for r in results if r.status == ProcessingStatus.PENDING),
        )
        return results

    async def _accept_file(
        self,
        collection: Collection,
        upload: UploadedFile,
        options: ProcessingOptions,
    ) -> UploadResult:
        if not upload.data:
            return UploadResult(
                filename=upload.filename,
                status=ProcessingStatus.FAILED,
                error="File is empty",
            )
        if len(upload.data) > self._max_upload_bytes:
            return UploadResult(
                filename=upload.filename,
                status=ProcessingStatus.FAILED,
                error=f"File exceeds the {self._max_upload_bytes} byte upload limit",
            )

        document = await self._catalog.create_document(
            DocumentCreate(
                collection_id=collection.id,
                title=PurePath(upload.filename).stem or upload.filename,
                filename=upload.filename,
                mime_type=upload.mime_type,
                file_size=len(upload.data),
                content_hash=hashlib.sha256(upload.data).hexdigest(),
                content_type=detect_content_type(upload.filename, upload.mime_type),
                metadata={"originalFilename": upload.filename},
            )
        )
        data = upload.data
        self._queue.submit(
            f"document-{document.id}",
            lambda: self.process_document(document.id, data, options),
        )
        return UploadResult(
            filename=upload.filename,
            status=ProcessingStatus.PENDING,
            document_id=document.id,
        )

    async def _preflight(self, collection: Collection) -> str | None:
        """Return why uploads into *collection* cannot be accepted, or ``None``."""
        if not collection.is_active:
            return f"Collection '{collection.name}' is inactive"
        store = await self._catalog.get_vector_store(collection.vector_store_id)
        if store is None:
            return f"Vector store #{collection.vector_store_id} no longer exists"
        if not store.enabled:
            return f"Vector store '{store.name}' is disabled"
        return None

    async def _resolve_options(
        self,
        collection: Collection,
        overrides: IngestionOverrides,
    ) -> ProcessingOptions:
        chunking_id = overrides.chunking_strategy_id
        if chunking_id == USE_COLLECTION_DEFAULT:
            chunking_id = collection.default_chunking_strategy_id

        if chunking_id is None:
            chunking = await self._catalog.get_default_chunking_strategy() or BUILTIN_CHUNKING_STRATEGY
        else:
            chunking = await self._catalog.get_chunking_strategy(chunking_id)
            if chunking is None:
                raise NotFoundError(message=f"Chunking strategy #{chunking_id} not found")

        cleansing_id = overrides.cleansing_config_id
        if cleansing_id == USE_COLLECTION_DEFAULT:
            cleansing_id = collection.default_cleansing_config_id

        cleansing: CleansingConfig | None = None
        if cleansing_id is not None:
            cleansing = await self._catalog.get_cleansing_config(cleansing_id)
            if cleansing is None:
                raise NotFoundError(message=f"Cleansing config #{cleansing_id} not found")

        return ProcessingOptions(chunking=chunking, cleansing=cleansing)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def process_document(
        self,
        document_id: int,
        file_bytes: bytes | None,
        options: ProcessingOptions,
    ) -> None:
        """Run the full pipeline for one document.

        *file_bytes* is ``None`` on reprocess; the stored ``raw_content``
        is used instead.

        Raises
        ------
        ConflictError
            If the document is already ``processing`` and the run was not
            claimed by the caller.
        """
        async with self._job_locks.hold(document_id):
            document = await self._catalog.get_document(document_id)
            if document is None:
                logger.info("document_processing_skipped", document_id=document_id, reason="deleted")
                return

            if document.processing_status == ProcessingStatus.PROCESSING:
                if not options.claimed:
                    raise ConflictError(message=f"Document #{document_id} is already processing")
            else:
                if not await self._catalog.update_document(
                    document_id,
                    processing_status=ProcessingStatus.PROCESSING,
                    error_message=None,
                ):
                    return

            log = logger.bind(document_id=document_id, filename=document.filename)
            log.info("document_processing_started", reprocess=file_bytes is None)
            try:
                await self._run(document, file_bytes, options)
            except Exception as exc:
                log.error(
                    "document_processing_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                await self._catalog.update_document(
                    document_id,
                    processing_status=ProcessingStatus.FAILED,
                    error_message=str(exc) or type(exc).__name__,
                )

    async def _run(
        self,
        document: Document,
        file_bytes: bytes | None,
        options: ProcessingOptions,
    ) -> None:
        log = logger.bind(document_id=document.id)

        collection = await self._catalog.get_collection(document.collection_id)
        if collection is None:
            raise ProcessingError(message=f"Collection #{document.collection_id} no longer exists")
        store_config = await self._catalog.get_vector_store(collection.vector_store_id)
        if store_config is None or not store_config.enabled:
            raise ProcessingError(
                message=f"Vector store #{collection.vector_store_id} is missing or disabled"
            )

        # 1. Text
        extracted: dict[str, Any] = {}
        if file_bytes is not None:
            text = await asyncio.to_thread(self._extractor.extract, file_bytes, document.content_type)
            extracted = await asyncio.to_thread(
                self._extractor.extract_metadata, file_bytes, document.content_type, text
            )
            if not await self._catalog.update_document(document.id, raw_content=text):
                log.info("document_processing_skipped", reason="deleted")
                return
        else:
            if document.raw_content is None:
                raise ProcessingError(message="Document has no stored content to reprocess")
            text = document.raw_content
        if not text.strip():
            raise ProcessingError(message="No text could be extracted from the document")

        # 2. Chunks
        text_chunks = chunker_from_config(options.chunking).chunk(text)
        contents = [c.content for c in text_chunks]

        # 3. Cleansing
        cleaned: list[str] | None = None
        warnings: list[str] = []
        if options.cleansing is not None:
            result = await self._cleansing.cleanse_chunks(contents, options.cleansing)
            cleaned = result.cleaned
            warnings = result.warnings
        embed_inputs = [
            cleaned[i] if cleaned is not None and cleaned[i].strip() else contents[i]
            for i in range(len(contents))
        ]

        # 4. Embeddings
        embedder = self._embedding_provider_factory(collection.embedding_model)
        embeddings = await embedder.embed(embed_inputs)
        if len(embeddings) != len(embed_inputs):
            raise EmbeddingError(
                message=f"Expected {len(embed_inputs)} embeddings, got {len(embeddings)}",
                provider_name=embedder.get_provider_name(),
            )
        for vector in embeddings:
            if len(vector) != collection.embedding_dimensions:
                raise ProcessingError(
                    message=(
                        f"Embedding model '{collection.embedding_model}' returned "
                        f"{len(vector)} dimensions, collection '{collection.name}' "
                        f"expects {collection.embedding_dimensions}"
                    )
                )

        # 5. Vectors
        vector_docs = [
            VectorDocument(
                id=make_chunk_id(document.id, chunk.chunk_index),
                content=embed_inputs[i],
                embedding=embeddings[i],
                metadata={
                    "documentId": document.id,
                    "documentTitle": document.title,
                    "documentType": document.content_type,
                    "collectionId": collection.id,
                    "chunkIndex": chunk.chunk_index,
                },
            )
            for i, chunk in enumerate(text_chunks)
        ]
        # Chunk rows of the previous run stay until replace_chunks succeeds,
        # so a failure anywhere above leaves them describing the live vectors.
        new_ids = {d.id for d in vector_docs}
        stale_ids = sorted(
            c.vector_id
            for c in await self._catalog.list_chunks(document.id)
            if c.vector_id not in new_ids
        )
        async with self._vector_store_factory(store_config) as store:
            await store.batch_add_documents(collection.name, vector_docs)
            if stale_ids:
                await store.batch_delete_documents(collection.name, stale_ids)

        # 6. Catalog
        chunk_rows = [
            DocumentChunk(
                document_id=document.id,
                chunk_index=chunk.chunk_index,
                content=chunk.content,
                cleaned_content=cleaned[i] if cleaned is not None else None,
                embedding=embeddings[i],
                token_count=len(embed_inputs[i].split()),
                metadata={
                    "startChar": chunk.start_char,
                    "endChar": chunk.end_char,
                    "strategy": options.chunking.type.value,
                },
            )
            for i, chunk in enumerate(text_chunks)
        ]
        if not await self._catalog.replace_chunks(document.id, chunk_rows):
            log.info("document_processing_skipped", reason="deleted")
            await self._discard_vectors(store_config, collection.name, [d.id for d in vector_docs])
            return

        metadata = {
            **document.metadata,
            **extracted,
            "processingConfig": self._processing_config(collection, options),
            "chunkCount": len(chunk_rows),
            "cleansingWarnings": warnings,
        }
        await self._catalog.update_document(
            document.id,
            processing_status=ProcessingStatus.COMPLETED,
            error_message=None,
            metadata=metadata,
        )
        log.info(
            "document_processing_completed",
            chunks=len(chunk_rows),
            cleansing_warnings=len(warnings),
        )

    @staticmethod
    def _processing_config(collection: Collection, options: ProcessingOptions) -> dict[str, Any]:
        chunking = options.chunking
        cleansing = options.cleansing
        return {
            "chunkingStrategyId": chunking.id or None,
            "chunkingStrategyName": chunking.name,
            "chunkingType": chunking.type.value,
            "chunkSize": chunking.chunk_size,
            "chunkOverlap": chunking.chunk_overlap,
            "separator": chunking.separator,
            "cleansingConfigId": cleansing.id if cleansing else None,
            "cleansingConfigName": cleansing.name if cleansing else None,
            "llmModel": cleansing.llm_model if cleansing else None,
            "embeddingModel": collection.embedding_model,
            "embeddingDimensions": collection.embedding_dimensions,
        }

    async def _discard_vectors(
        self,
        store_config: VectorStoreConfig,
        collection_name: str,
        ids: list[str],
        document_id: int | None = None,
    ) -> None:
        """Best-effort removal of vector entries; failures are logged.

        With *document_id*, every entry whose ``documentId`` metadata
        matches is removed as well, including ids no chunk row lists.
        """
        if not ids and document_id is None:
            return
        try:
            async with self._vector_store_factory(store_config) as store:
                if ids:
                    await store.batch_delete_documents(collection_name, ids)
                if document_id is not None:
                    await store.delete_by_filter(collection_name, {"documentId": document_id})
        except (BackendError, NotFoundError) as exc:
            logger.warning(
                "vector_cleanup_failed",
                collection=collection_name,
                vectors=len(ids),
                error=str(exc),
            )

    # ------------------------------------------------------------------
    # Reprocess / delete / read
    # ------------------------------------------------------------------

    async def reprocess_document(
        self,
        document_id: int,
        overrides: IngestionOverrides | None = None,
    ) -> Document:
        """Re-run chunking, cleansing and embedding from stored content.

        The document is moved to ``processing`` before this returns, so a
        second reprocess request is rejected until the job finishes.

        Raises
        ------
        NotFoundError
            If the document, or a referenced strategy, does not exist.
        ConflictError
            If the document is already being processed.
        ValidationError
            If there is no stored content or the collection is inactive.
        """
        async with self._admission_locks.hold(document_id):
            document = await self._catalog.get_document(document_id)
            if document is None:
                raise NotFoundError(message=f"Document #{document_id} not found")
            if (
                document.processing_status == ProcessingStatus.PROCESSING
                or self._job_locks.locked(document_id)
            ):
                raise ConflictError(message=f"Document #{document_id} is already processing")
            if document.raw_content is None:
                raise ValidationError(
                    message=f"Document #{document_id} has no stored content to reprocess"
                )
            collection = await self._catalog.get_collection(document.collection_id)
            if collection is None or not collection.is_active:
                raise ValidationError(
                    message=f"Collection #{document.collection_id} is not active"
                )

            options = await self._resolve_options(collection, overrides or IngestionOverrides())
            options = options.model_copy(update={"claimed": True})
            previous_chunks = len(await self._catalog.list_chunks(document_id))
            await self._catalog.update_document(
                document_id,
                processing_status=ProcessingStatus.PROCESSING,
                error_message=None,
            )
            refreshed = await self._catalog.get_document(document_id)

        self._queue.submit(
            f"document-{document_id}-reprocess",
            lambda: self.process_document(document_id, None, options),
        )
        logger.info("document_reprocess_queued", document_id=document_id, previous_chunks=previous_chunks)
        return refreshed or document

    async def delete_document(self, document_id: int) -> None:
        """Remove a document's vectors (best effort) and its Catalog rows.

        Raises
        ------
        NotFoundError
            If the document does not exist.
        """
        document = await self._catalog.get_document(document_id)
        if document is None:
            raise NotFoundError(message=f"Document #{document_id} not found")

        chunks = await self._catalog.list_chunks(document_id)
        collection = await self._catalog.get_collection(document.collection_id)
        if collection is not None:
            store_config = await self._catalog.get_vector_store(collection.vector_store_id)
            if store_config is not None and store_config.enabled:
                await self._discard_vectors(
                    store_config,
                    collection.name,
                    [c.vector_id for c in chunks],
                    document_id=document_id,
                )

        await self._catalog.delete_document(document_id)
        logger.info("document_deleted", document_id=document_id, chunks=len(chunks))

    async def get_document(self, document_id: int) -> DocumentWithChunks:
        document = await self._catalog.get_document(document_id)
        if document is None:
            raise NotFoundError(message=f"Document #{document_id} not found")
        chunks = await self._catalog.list_chunks(document_id)
        return DocumentWithChunks(**document.model_dump(), chunks=chunks)

    # ------------------------------------------------------------------
    # Copy / regenerate
    # ------------------------------------------------------------------

    async def copy_documents(
        self,
        source: Collection,
        target: Collection,
        copy_vectors: bool = True,
    ) -> CopyStats:
        """Copy every document of *source* into *target*.

        With *copy_vectors*, a completed document whose stored embeddings
        fit *target* keeps its chunks: they are written to the target's
        vector store under the new document's ids, with no embedding call.
        Every other document is queued for processing in *target* with the
        target's default strategies.  Documents without stored text have
        never been processed and are skipped.

        Raises
        ------
        ValidationError
            If *target* is inactive or its vector store is missing or
            disabled.
        """
        reason = await self._preflight(target)
        if reason is not None:
            raise ValidationError(message=reason)
        store_config = await self._catalog.get_vector_store(target.vector_store_id)
        if store_config is None:
            raise ValidationError(message=f"Vector store #{target.vector_store_id} no longer exists")
        options = await self._resolve_options(target, IngestionOverrides())

        stats = {"documents_copied": 0, "vectors_copied": 0, "documents_queued": 0, "documents_skipped": 0}
        for document in await self._catalog.list_documents(source.id):
            if document.raw_content is None:
                stats["documents_skipped"] += 1
                continue

            chunks: list[DocumentChunk] = []
            if (
                copy_vectors
                and document.processing_status == ProcessingStatus.COMPLETED
                and source.embedding_model == target.embedding_model
            ):
                chunks = await self._catalog.list_chunks(document.id)
                if not all(
                    c.embedding is not None and len(c.embedding) == target.embedding_dimensions
                    for c in chunks
                ):
                    chunks = []

            copy = await self._catalog.create_document(
                DocumentCreate(
                    collection_id=target.id,
                    title=document.title,
                    filename=document.filename,
                    mime_type=document.mime_type,
                    file_size=document.file_size,
                    content_hash=document.content_hash,
                    content_type=document.content_type,
                    raw_content=document.raw_content,
                    metadata={**document.metadata, "copiedFrom": document.id},
                )
            )
            stats["documents_copied"] += 1

            if chunks:
                await self._copy_chunks(copy, chunks, target, store_config)
                stats["vectors_copied"] += len(chunks)
                continue

            self._queue.submit(
                f"document-{copy.id}",
                lambda copy_id=copy.id: self.process_document(copy_id, None, options),
            )
            stats["documents_queued"] += 1

        logger.info("documents_copied", source=source.name, target=target.name, **stats)
        return CopyStats(**stats)

    async def _copy_chunks(
        self,
        document: Document,
        chunks: list[DocumentChunk],
        collection: Collection,
        store_config: VectorStoreConfig,
    ) -> None:
        """Give *document* the already embedded *chunks* of another document."""
        async with self._job_locks.hold(document.id):
            await self._catalog.update_document(
                document.id, processing_status=ProcessingStatus.PROCESSING
            )
            vector_docs = [
                VectorDocument(
                    id=make_chunk_id(document.id, chunk.chunk_index),
                    content=(
                        chunk.cleaned_content
                        if chunk.cleaned_content and chunk.cleaned_content.strip()
                        else chunk.content
                    ),
                    embedding=chunk.embedding or [],
                    metadata={
                        "documentId": document.id,
                        "documentTitle": document.title,
                        "documentType": document.content_type,
                        "collectionId": collection.id,
                        "chunkIndex": chunk.chunk_index,
                    },
                )
                for chunk in chunks
            ]
            try:
                async with self._vector_store_factory(store_config) as store:
                    await store.batch_add_documents(collection.name, vector_docs)
            except RaglineError as exc:
                logger.warning("document_copy_failed", document_id=document.id, error=exc.message)
                await self._catalog.update_document(
                    document.id,
                    processing_status=ProcessingStatus.FAILED,
                    error_message=exc.message,
                )
                raise

            await self._catalog.replace_chunks(document.id, chunks)
            await self._catalog.update_document(
                document.id,
                processing_status=ProcessingStatus.COMPLETED,
                metadata={**document.metadata, "chunkCount": len(chunks)},
            )

    async def regenerate_document(
        self,
        document_id: int,
        target_collection_id: int,
        overrides: IngestionOverrides | None = None,
        delete_original: bool = False,
    ) -> Document:
        """Ingest a document's text again as a new document in a collection.

        The text is the stored ``raw_content``, or the chunk contents
        joined by blank lines when none is stored.  The new document is
        named ``regenerated_<filename>`` and processed in the background
        with *overrides* resolved against the target collection.

        Raises
        ------
        NotFoundError
            If the document, the target collection or a referenced
            strategy does not exist.
        ValidationError
            If the target cannot accept documents or no text is available.
        ConflictError
            If *delete_original* is set while the original is processing.
        """
        document = await self._catalog.get_document(document_id)
        if document is None:
            raise NotFoundError(message=f"Document #{document_id} not found")
        target = await self._catalog.get_collection(target_collection_id)
        if target is None:
            raise NotFoundError(message=f"Target collection #{target_collection_id} not found")
        reason = await self._preflight(target)
        if reason is not None:
            raise ValidationError(message=reason)

        text = document.raw_content
        if text is None:
            chunks = await self._catalog.list_chunks(document_id)
            text = "\n\n".join(c.content for c in chunks)
        if not text.strip():
            raise ValidationError(message=f"Document #{document_id} has no content to regenerate")

        if delete_original and (
            document.processing_status == ProcessingStatus.PROCESSING
            or self._job_locks.locked(document_id)
        ):
            raise ConflictError(message=f"Document #{document_id} is still processing")

        options = await self._resolve_options(target, overrides or IngestionOverrides())
        regenerated = await self._catalog.create_document(
            DocumentCreate(
                collection_id=target.id,
                title=document.title,
                filename=f"regenerated_{document.filename}",
                mime_type=document.mime_type,
                file_size=document.file_size,
                content_hash=document.content_hash,
                content_type=document.content_type,
                raw_content=text,
                metadata={
                    "originalFilename": document.metadata.get("originalFilename", document.filename),
                    "regeneratedFrom": document.id,
                },
            )
        )

        if delete_original:
            await self.delete_document(document_id)

        self._queue.submit(
            f"document-{regenerated.id}",
            lambda: self.process_document(regenerated.id, None, options),
        )
        logger.info(
            "document_regenerate_queued",
            document_id=document_id,
            new_document_id=regenerated.id,
            collection=target.name,
            original_deleted=delete_original,
        )
        return regenerated
