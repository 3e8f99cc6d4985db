"""Document ingestion: extraction, scanned detection and segmentation."""
from __future__ import annotations

from .chunking import ChunkingConfig, DocumentSegmenter, chunk_pages
from .detection import detect_scanned_pdf
from .extractors import PDFExtractionResult, PDFExtractor
from .models import Chunk, ManagedDocument, PageText, Rect, TextItem
from .pipeline import IngestPipeline, IngestPipelineConfig

__all__ = [
    "Chunk",
    "ChunkingConfig",
    "DocumentSegmenter",
    "IngestPipeline",
    "IngestPipelineConfig",
    "ManagedDocument",
    "PDFExtractionResult",
    "PDFExtractor",
    "PageText",
    "Rect",
    "TextItem",
    "chunk_pages",
    "detect_scanned_pdf",
]
