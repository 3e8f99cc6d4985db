"""Chunking utilities for breaking extracted pages into retrievable units."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from .models import Chunk, PageText, Rect, TextItem

LOGGER = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\S+")

# Fragments whose tops differ by less than this share a line.
LINE_TOLERANCE = 3.0
# A line starts a new paragraph when its distance to the previous line exceeds
# this multiple of its glyph height.
PARAGRAPH_GAP_FACTOR = 1.5
# Shorter paragraphs are usually page numbers or running headers.
MIN_PARAGRAPH_CHARS = 20

Segment = Tuple[str, Optional[Tuple[Rect, ...]]]


@dataclass(slots=True)
class ChunkingConfig:
    chunk_size: int = 500
    overlap: int = 50

    def validate(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be a positive integer")
        if self.overlap < 0:
            raise ValueError("overlap must be a non-negative integer")
        if self.chunk_size <= self.overlap:
            raise ValueError(
                f"chunk_size ({self.chunk_size}) must be greater than overlap ({self.overlap})"
            )


@dataclass(slots=True)
class _Word:
    text: str
    rect: Rect


@dataclass(slots=True)
class _Line:
    top: float
    words: List[_Word] = field(default_factory=list)

    @property
    def height(self) -> float:
        return max((word.rect.height for word in self.words), default=0.0)


class DocumentSegmenter:
    """Split extracted pages into chunks.

    Pages that carry positioned fragments are grouped into paragraphs using
    their layout, and each chunk keeps one rect per word so a sub-span can be
    highlighted later. Pages without positions fall back to an overlapping
    sliding window over whitespace-delimited words.
    """

    def __init__(self, config: Optional[ChunkingConfig] = None) -> None:
        self.config = config or ChunkingConfig()
        self.config.validate()

    def chunk_pages(
        self,
        pages: Iterable[PageText],
        document_id: Optional[str] = None,
        document_name: Optional[str] = None,
    ) -> Iterator[Chunk]:
        chunk_index = 0
        for page in pages:
            for text, rects in self._segment_page(page):
                chunk = Chunk(
                    chunk_id=make_chunk_id(document_id, chunk_index),
                    text=text,
                    page_number=page.page_number,
                    chunk_index=chunk_index,
                    document_id=document_id,
                    document_name=document_name,
                    rects=rects,
                )
                LOGGER.debug(
                    "Chunk %s page %s words=%s rects=%s",
                    chunk_index,
                    page.page_number,
                    len(text.split()),
                    len(rects) if rects else 0,
                )
                yield chunk
                chunk_index += 1

    def _segment_page(self, page: PageText) -> List[Segment]:
        if page.has_layout:
            segments = self._layout_segments(page.items or ())
            if segments:
                return segments
        return list(self._window_segments(page.text))

    def _window_segments(self, text: str) -> Iterator[Segment]:
        words = text.split()
        if not words:
            return
        step = self.config.chunk_size - self.config.overlap
        for start in range(0, len(words), step):
            yield " ".join(words[start : start + self.config.chunk_size]), None

    def _layout_segments(self, items: Sequence[TextItem]) -> List[Segment]:
        words = [word for item in items for word in _split_item_words(item)]
        if not words:
            return []

        paragraphs = _group_paragraphs(_group_lines(words))
        segments: List[Segment] = []
        for paragraph in paragraphs:
            paragraph_words = [word for line in paragraph for word in line.words]
            text = " ".join(word.text for word in paragraph_words)
            if not text.strip():
                continue
            segments.append((text, tuple(word.rect for word in paragraph_words)))

        substantial = [segment for segment in segments if len(segment[0].strip()) >= MIN_PARAGRAPH_CHARS]
        return substantial or segments


def make_chunk_id(document_id: Optional[str], chunk_index: int) -> str:
    return f"{document_id or 'chunk'}-{chunk_index}"


def _split_item_words(item: TextItem) -> List[_Word]:
    """Break a fragment into words, estimating each word's horizontal span."""

    length = len(item.text)
    words: List[_Word] = []
    for match in _WORD_RE.finditer(item.text):
        start, end = match.span()
        rect = Rect(
            left=item.left + item.width * start / length,
            top=item.top,
            width=item.width * (end - start) / length,
            height=item.height,
        )
        words.append(_Word(text=match.group(), rect=rect))
    return words


def _group_lines(words: Sequence[_Word]) -> List[_Line]:
    lines: List[_Line] = []
    for word in sorted(words, key=lambda w: (w.rect.top, w.rect.left)):
        if lines and abs(word.rect.top - lines[-1].top) < LINE_TOLERANCE:
            lines[-1].words.append(word)
        else:
            lines.append(_Line(top=word.rect.top, words=[word]))
    for line in lines:
        line.words.sort(key=lambda w: w.rect.left)
    return lines


def _group_paragraphs(lines: Sequence[_Line]) -> List[List[_Line]]:
    paragraphs: List[List[_Line]] = []
    previous: Optional[_Line] = None
    for line in lines:
        if previous is None or line.top - previous.top > PARAGRAPH_GAP_FACTOR * line.height:
            paragraphs.append([line])
        else:
            paragraphs[-1].append(line)
        previous = line
    return paragraphs


def chunk_pages(
    pages: Iterable[PageText],
    document_id: Optional[str] = None,
    document_name: Optional[str] = None,
    *,
    chunk_size: int = 500,
    overlap: int = 50,
) -> List[Chunk]:
    """Segment *pages* into chunks using the best strategy for each page."""

    segmenter = DocumentSegmenter(ChunkingConfig(chunk_size=chunk_size, overlap=overlap))
    return list(segmenter.chunk_pages(pages, document_id, document_name))


__all__ = [
    "ChunkingConfig",
    "DocumentSegmenter",
    "LINE_TOLERANCE",
    "MIN_PARAGRAPH_CHARS",
    "PARAGRAPH_GAP_FACTOR",
    "chunk_pages",
    "make_chunk_id",
]
