"""Chunking strategies: split extracted text into embedding-sized pieces.

Four strategies share the :class:`BaseChunker` contract; sizes are in
characters.

- ``fixed_size``: windows of exactly *chunk_size* characters stepping by
  ``chunk_size - chunk_overlap``.  The last window may be shorter.  Nothing
  is trimmed, so ``text[start_char:end_char] == content`` and the
  non-overlapping parts of consecutive chunks rebuild the input exactly.
- ``sliding_window``: the same window arithmetic, registered under its own
  name so stored strategy configs keep their type.
- ``sentence``: abbreviation-aware sentence split, sentences greedily packed
  up to *chunk_size*.
- ``paragraph``: blank-line split, paragraphs greedily packed up to
  *chunk_size*.

A sentence or paragraph longer than *chunk_size* is cut into fixed-size
windows on its own.  Empty or whitespace-only input yields no chunks.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod

import structlog

from ragline.models.catalog import ChunkingType
from ragline.models.rag import TextChunk
from ragline.utils.errors import ValidationError

logger = structlog.get_logger(logger_name=__name__)

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_END = re.compile(r"[.!?]+(?:\s+|$)")

# Common abbreviations that should NOT trigger a sentence split.
_ABBREVIATIONS = frozenset(
    {
        "Dr",
        "Mr",
        "Mrs",
        "Ms",
        "Prof",
        "Jr",
        "Sr",
        "St",
        "vs",
        "etc",
        "approx",
        "Inc",
        "Ltd",
        "No",
        "Vol",
        "Fig",
        "e.g",
        "i.e",
        "Ph.D",
    }
)


def validate_chunking_params(chunk_size: int, chunk_overlap: int) -> None:
    """Reject sizes that cannot produce forward-moving windows.

    Raises
    ------
    ValidationError
        If ``chunk_size <= 0``, ``chunk_overlap < 0`` or
        ``chunk_overlap >= chunk_size``.
    """
    if chunk_size <= 0:
        raise ValidationError(message=f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0:
        raise ValidationError(message=f"chunk_overlap cannot be negative, got {chunk_overlap}")
    if chunk_overlap >= chunk_size:
        raise ValidationError(
            message=(
                f"chunk_overlap ({chunk_overlap}) must be less than chunk_size ({chunk_size})"
            )
        )


class BaseChunker(ABC):
    """Common state and helpers for every chunking strategy.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk.
    chunk_overlap:
        Characters shared by consecutive fixed-size windows.
    separator:
        Optional literal separator; only the paragraph strategy uses it.
    """

    strategy_type: ChunkingType

    def __init__(
        self,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        separator: str | None = None,
    ) -> None:
        validate_chunking_params(chunk_size, chunk_overlap)
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._separator = separator

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def chunk_overlap(self) -> int:
        return self._chunk_overlap

    def chunk(self, text: str) -> list[TextChunk]:
        """Split *text* into chunks numbered densely from 0."""
        if not text or not text.strip():
            return []
        spans = self._spans(text)
        chunks = [
            TextChunk(content=text[start:end], chunk_index=i, start_char=start, end_char=end)
            for i, (start, end) in enumerate(spans)
        ]
        logger.debug(
            "chunking_complete",
            strategy=self.strategy_type.value,
            num_chunks=len(chunks),
            text_length=len(text),
        )
        return chunks

    @abstractmethod
    def _spans(self, text: str) -> list[tuple[int, int]]:
        """Return ``(start, end)`` offsets of each chunk in *text*."""

    def _windows(self, start: int, end: int) -> list[tuple[int, int]]:
        """Fixed-size windows covering ``[start, end)``."""
        step = self._chunk_size - self._chunk_overlap
        spans: list[tuple[int, int]] = []
        pos = start
        while pos < end:
            window_end = min(pos + self._chunk_size, end)
            spans.append((pos, window_end))
            if window_end == end:
                break
            pos += step
        return spans

    def _pack(self, units: list[tuple[int, int]]) -> list[tuple[int, int]]:
        """Greedily merge consecutive unit spans while they fit in *chunk_size*.

        A merged chunk runs from its first unit's start to its last unit's
        end, so the separators between units are kept verbatim.
        """
        spans: list[tuple[int, int]] = []
        current: tuple[int, int] | None = None
        for unit_start, unit_end in units:
            if unit_end - unit_start > self._chunk_size:
                if current is not None:
                    spans.append(current)
                    current = None
                spans.extend(self._windows(unit_start, unit_end))
                continue
            if current is None:
                current = (unit_start, unit_end)
            elif unit_end - current[0] <= self._chunk_size:
                current = (current[0], unit_end)
            else:
                spans.append(current)
                current = (unit_start, unit_end)
        if current is not None:
            spans.append(current)
        return spans


class FixedSizeChunker(BaseChunker):
    strategy_type = ChunkingType.FIXED_SIZE

    def _spans(self, text: str) -> list[tuple[int, int]]:
        return self._windows(0, len(text))


class SlidingWindowChunker(FixedSizeChunker):
    """Fixed-size windows with the overlap applied between every pair."""

    strategy_type = ChunkingType.SLIDING_WINDOW


class SentenceChunker(BaseChunker):
    strategy_type = ChunkingType.SENTENCE

    def _spans(self, text: str) -> list[tuple[int, int]]:
        return self._pack(_sentence_spans(text))


class ParagraphChunker(BaseChunker):
    strategy_type = ChunkingType.PARAGRAPH

    def _spans(self, text: str) -> list[tuple[int, int]]:
        if self._separator:
            pattern = re.compile(re.escape(self._separator))
        else:
            pattern = _PARAGRAPH_BREAK
        return self._pack(_split_spans(text, pattern))


def _trimmed(text: str, start: int, end: int) -> tuple[int, int] | None:
    """Shrink ``[start, end)`` to exclude surrounding whitespace."""
    segment = text[start:end]
    stripped = segment.strip()
    if not stripped:
        return None
    lead = len(segment) - len(segment.lstrip())
    return start + lead, start + lead + len(stripped)


def _split_spans(text: str, pattern: re.Pattern[str]) -> list[tuple[int, int]]:
    spans: list[tuple[int, int]] = []
    last = 0
    for match in pattern.finditer(text):
        span = _trimmed(text, last, match.start())
        if span:
            spans.append(span)
        last = match.end()
    span = _trimmed(text, last, len(text))
    if span:
        spans.append(span)
    return spans


def _sentence_spans(text: str) -> list[tuple[int, int]]:
    """Return sentence offsets, not splitting after known abbreviations."""
    spans: list[tuple[int, int]] = []
    last = 0
    for match in _SENTENCE_END.finditer(text):
        before = text[last : match.start()]
        word = before.rsplit(None, 1)[-1] if before.strip() else ""
        if word in _ABBREVIATIONS and match.group().rstrip() == ".":
            continue
        end_of_punct = match.start() + len(match.group().rstrip())
        span = _trimmed(text, last, end_of_punct)
        if span:
            spans.append(span)
        last = match.end()
    span = _trimmed(text, last, len(text))
    if span:
        spans.append(span)
    return spans
