"""High level ingestion pipeline entry point."""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Optional

from querydoc.errors import ScannedDocumentError
from querydoc.telemetry import emit_ingest_event

from .chunking import ChunkingConfig, DocumentSegmenter
from .detection import detect_scanned_pdf
from .extractors import PDFExtractor
from .models import ManagedDocument

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IngestPipelineConfig:
    chunk_size: int = 500
    overlap: int = 50
    ocr_language: str = "eng"
    max_pages: Optional[int] = None


class IngestPipeline:
    """Pipeline orchestrating extraction, scanned detection and segmentation."""

    def __init__(
        self,
        config: Optional[IngestPipelineConfig] = None,
        *,
        extractor: Optional[PDFExtractor] = None,
    ) -> None:
        self.config = config or IngestPipelineConfig()
        self.extractor = extractor or PDFExtractor(
            ocr_language=self.config.ocr_language,
            max_pages=self.config.max_pages,
        )
        self.segmenter = DocumentSegmenter(
            ChunkingConfig(chunk_size=self.config.chunk_size, overlap=self.config.overlap)
        )

    def ingest(
        self,
        file_bytes: bytes,
        file_name: str,
        *,
        document_id: Optional[str] = None,
        ocr: bool = False,
    ) -> ManagedDocument:
        """Turn an uploaded PDF into a :class:`ManagedDocument`.

        Raises :class:`ScannedDocumentError` when the native text layer looks
        unusable and *ocr* was not requested, so the caller can ask the user
        before running the slower OCR pass.
        """

        document_id = document_id or uuid.uuid4().hex
        started = time.perf_counter()
        emit_ingest_event(
            "ingest.file.start",
            file_name=file_name,
            document_id=document_id,
            size_bytes=len(file_bytes),
            ocr=ocr,
        )

        result = self.extractor.extract(file_bytes, ocr=ocr)
        scanned = detect_scanned_pdf(result.pages)
        if scanned and not result.ocr_performed:
            emit_ingest_event(
                "ingest.file.scanned",
                file_name=file_name,
                document_id=document_id,
                pages=len(result.pages),
                scanned=True,
            )
            raise ScannedDocumentError(file_name, len(result.pages))
        if scanned:
            LOGGER.warning("OCR output for %s still looks sparse; continuing with what was recognised", file_name)

        chunks = list(self.segmenter.chunk_pages(result.pages, document_id, file_name))
        LOGGER.info("Generated %s chunks for file %s", len(chunks), file_name)

        emit_ingest_event(
            "ingest.file.complete",
            file_name=file_name,
            document_id=document_id,
            size_bytes=len(file_bytes),
            duration_ms=(time.perf_counter() - started) * 1000.0,
            pages=len(result.pages),
            ocr=result.ocr_performed,
            scanned=scanned,
            chunks=len(chunks),
        )
        return ManagedDocument(
            id=document_id,
            name=file_name,
            file=file_bytes,
            chunks=chunks,
            extracted_pages=list(result.pages),
            ocr_performed=result.ocr_performed,
            total_pages=result.total_pages,
        )


__all__ = ["IngestPipeline", "IngestPipelineConfig"]
