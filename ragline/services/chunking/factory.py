"""Build a chunker from a strategy type and its parameters."""

from __future__ import annotations

from ragline.models.catalog import ChunkingStrategyConfig, ChunkingType
from ragline.services.chunking.chunkers import (
    BaseChunker,
    FixedSizeChunker,
    ParagraphChunker,
    SentenceChunker,
    SlidingWindowChunker,
)
from ragline.utils.errors import ValidationError

_CHUNKERS: dict[ChunkingType, type[BaseChunker]] = {
    ChunkingType.FIXED_SIZE: FixedSizeChunker,
    ChunkingType.SENTENCE: SentenceChunker,
    ChunkingType.PARAGRAPH: ParagraphChunker,
    ChunkingType.SLIDING_WINDOW: SlidingWindowChunker,
}


def create_chunker(
    strategy_type: ChunkingType | str,
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
    separator: str | None = None,
) -> BaseChunker:
    """Return the chunker registered for *strategy_type*.

    Raises
    ------
    ValidationError
        If the type is unknown or the size parameters are invalid.
    """
    try:
        key = ChunkingType(strategy_type)
    except ValueError as exc:
        raise ValidationError(message=f"Unknown chunking strategy type: {strategy_type}") from exc
    return _CHUNKERS[key](chunk_size=chunk_size, chunk_overlap=chunk_overlap, separator=separator)


def chunker_from_config(config: ChunkingStrategyConfig) -> BaseChunker:
    return create_chunker(
        config.type,
        chunk_size=config.chunk_size,
        chunk_overlap=config.chunk_overlap,
        separator=config.separator,
    )
