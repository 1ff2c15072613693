"""Background execution of ingestion jobs.

Uploads return as soon as their Document rows exist; the extraction,
chunking, cleansing and embedding work runs here, on the event loop of the
process that accepted the upload.  A semaphore caps how many documents are
processed at once so a large upload cannot starve search requests of
provider capacity.

Jobs are plain ``async`` callables.  A job is expected to record its own
failure (the pipeline marks the Document ``failed``); anything that still
escapes is logged here so one broken document never takes the queue down.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from ragline.utils.errors import ProcessingError

logger = structlog.get_logger(logger_name=__name__)

Job = Callable[[], Awaitable[None]]


class IngestionQueue:
    """Bounded-concurrency runner for ingestion jobs.

    Parameters
    ----------
    max_concurrency:
        Maximum number of jobs running at the same time.
    """

    def __init__(self, max_concurrency: int = 4) -> None:
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        """Number of submitted jobs that have not finished yet."""
        return len(self._tasks)

    def submit(self, name: str, job: Job) -> asyncio.Task[None]:
        """Schedule *job* and return its task.

        Must be called from a running event loop.

        Raises
        ------
        ProcessingError
            If the queue has been shut down.
        """
        if self._closed:
            raise ProcessingError(message="Ingestion queue is shut down; job rejected")
        task = asyncio.create_task(self._run(name, job), name=f"ingest:{name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("ingestion_job_queued", job=name, pending=len(self._tasks))
        return task

    async def _run(self, name: str, job: Job) -> None:
        async with self._semaphore:
            try:
                await job()
            except Exception as exc:
                logger.error(
                    "ingestion_job_crashed",
                    job=name,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )

    async def drain(self) -> None:
        """Wait until every submitted job, including ones queued meanwhile, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Stop accepting jobs and wait for the running ones."""
        self._closed = True
        await self.drain()
        logger.info("ingestion_queue_stopped")
