"""Chunking strategies (fixed_size, sentence, paragraph, sliding_window)."""

from ragline.services.chunking.chunkers import (
    BaseChunker,
    FixedSizeChunker,
    ParagraphChunker,
    SentenceChunker,
    SlidingWindowChunker,
    validate_chunking_params,
)
from ragline.services.chunking.factory import chunker_from_config, create_chunker

__all__ = [
    "BaseChunker",
    "FixedSizeChunker",
    "ParagraphChunker",
    "SentenceChunker",
    "SlidingWindowChunker",
    "chunker_from_config",
    "create_chunker",
    "validate_chunking_params",
]
