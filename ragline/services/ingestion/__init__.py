"""Upload, background processing and lifecycle of ingested documents."""

from ragline.services.ingestion.ingestion_pipeline import (
    BUILTIN_CHUNKING_STRATEGY,
    IngestionPipeline,
    ProcessingOptions,
)
from ragline.services.ingestion.text_extractor import TextExtractor, detect_content_type
from ragline.services.ingestion.worker import IngestionQueue

__all__ = [
    "BUILTIN_CHUNKING_STRATEGY",
    "IngestionPipeline",
    "IngestionQueue",
    "ProcessingOptions",
    "TextExtractor",
    "detect_content_type",
]
