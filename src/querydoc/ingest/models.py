"""Data models shared by extraction, segmentation and retrieval."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True, slots=True)
class Rect:
    """Bounding box in page-viewport units with a top-left origin."""

    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class TextItem:
    """A positioned text fragment reported by the PDF extractor."""

    text: str
    left: float
    top: float
    width: float
    height: float

    @property
    def rect(self) -> Rect:
        return Rect(left=self.left, top=self.top, width=self.width, height=self.height)


@dataclass(frozen=True, slots=True)
class PageText:
    """Represents text extracted from a page in the source document."""

    page_number: int
    text: str
    items: Optional[Tuple[TextItem, ...]] = None

    @property
    def has_layout(self) -> bool:
        return bool(self.items)


@dataclass(frozen=True, slots=True)
class Chunk:
    """A retrievable unit of document text with page and position metadata."""

    chunk_id: str
    text: str
    page_number: int
    chunk_index: int
    document_id: Optional[str] = None
    document_name: Optional[str] = None
    rects: Optional[Tuple[Rect, ...]] = None


@dataclass(slots=True)
class ManagedDocument:
    """Full state of one uploaded document."""

    id: str
    name: str
    file: Optional[bytes]
    chunks: List[Chunk] = field(default_factory=list)
    extracted_pages: List[PageText] = field(default_factory=list)
    summary: Optional[str] = None
    current_page: int = 1
    ocr_performed: bool = False
    total_pages: int = 0

    @property
    def full_text(self) -> str:
        return "\n\n".join(page.text for page in self.extracted_pages if page.text)
