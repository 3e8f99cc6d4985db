"""In-memory collection of the uploaded documents."""
from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Dict, List, Optional

from querydoc.config import Settings, get_settings
from querydoc.errors import DocumentNotFoundError
from querydoc.ingest.models import Chunk, ManagedDocument
from querydoc.ingest.pipeline import IngestPipeline, IngestPipelineConfig
from querydoc.llm.base import LLMBackend
from querydoc.logging_config import AUDIT_LOGGER_NAME
from querydoc.prompt_builder import build_summary_prompt
from querydoc.telemetry import emit_exception, emit_inference_request, emit_inference_result

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)


class DocumentCollection:
    """Owns the lifecycle of every :class:`ManagedDocument` in the session."""

    def __init__(self, pipeline: Optional[IngestPipeline] = None) -> None:
        self.pipeline = pipeline or IngestPipeline(IngestPipelineConfig())
        self._documents: Dict[str, ManagedDocument] = {}
        self._active_id: Optional[str] = None
        # uploads and OCR runs write from the threadpool while turns read on the loop
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "DocumentCollection":
        config = IngestPipelineConfig(
            chunk_size=settings.chunk_size,
            overlap=settings.chunk_overlap,
            ocr_language=settings.ocr_language,
            max_pages=settings.max_pages,
        )
        return cls(IngestPipeline(config))

    def add(self, name: str, data: bytes, *, ocr: bool = False) -> ManagedDocument:
        """Ingest *data* and make the new document the active one.

        :class:`~querydoc.errors.ScannedDocumentError` propagates so the caller
        can offer an OCR pass.
        """

        try:
            document = self.pipeline.ingest(data, name, document_id=uuid.uuid4().hex, ocr=ocr)
        except Exception as error:
            emit_exception(module=f"{__name__}.add", error=error)
            raise
        with self._lock:
            self._documents[document.id] = document
            self._active_id = document.id
        AUDIT_LOGGER.info(
            {
                "event": "ingest",
                "document_id": document.id,
                "file_name": name,
                "chunk_count": len(document.chunks),
                "ocr": document.ocr_performed,
            }
        )
        return document

    def run_ocr(self, document_id: str) -> ManagedDocument:
        """Re-ingest an existing document with OCR, keeping its id and page."""

        document = self.get(document_id)
        if document.file is None:
            raise DocumentNotFoundError(f"Original file for {document.name} is no longer available")
        refreshed = self.pipeline.ingest(document.file, document.name, document_id=document.id, ocr=True)
        refreshed.current_page = min(document.current_page, max(refreshed.total_pages, 1))
        refreshed.summary = document.summary
        with self._lock:
            self._documents[document.id] = refreshed
        return refreshed

    def get(self, document_id: str) -> ManagedDocument:
        try:
            return self._documents[document_id]
        except KeyError:
            raise DocumentNotFoundError(f"Unknown document: {document_id}") from None

    def list(self) -> List[ManagedDocument]:
        with self._lock:
            return list(self._documents.values())

    def remove(self, document_id: str) -> None:
        self.get(document_id)
        with self._lock:
            del self._documents[document_id]
            if self._active_id == document_id:
                self._active_id = next(reversed(self._documents), None)

    def all_chunks(self) -> List[Chunk]:
        return [chunk for document in self.list() for chunk in document.chunks]

    @property
    def active_document_id(self) -> Optional[str]:
        return self._active_id

    def set_active(self, document_id: str) -> ManagedDocument:
        document = self.get(document_id)
        self._active_id = document.id
        return document

    def set_current_page(self, document_id: str, page: int) -> ManagedDocument:
        document = self.get(document_id)
        upper = document.total_pages or len(document.extracted_pages) or 1
        if page < 1 or page > upper:
            raise ValueError(f"Page {page} is outside 1..{upper}")
        document.current_page = page
        return document

    def show_source(self, chunk: Chunk) -> None:
        """Jump to a cited chunk: activate its document and turn to its page."""

        if chunk.document_id is None or chunk.document_id not in self._documents:
            LOGGER.debug("Ignoring source jump to unknown document %s", chunk.document_id)
            return
        document = self._documents[chunk.document_id]
        self._active_id = document.id
        document.current_page = chunk.page_number

    async def summarize(self, document_id: str, backend: LLMBackend, model: str) -> str:
        document = self.get(document_id)
        prompt = build_summary_prompt(document.full_text)
        req_id = uuid.uuid4().hex
        emit_inference_request(
            req_id=req_id,
            provider=backend.name,
            model=model,
            prompt_preview=prompt,
            prompt_len=len(prompt),
            purpose="summary",
        )
        started = time.perf_counter()
        completion = await backend.generate(prompt, model)
        emit_inference_result(
            req_id=req_id,
            provider=backend.name,
            model=model,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            answer_preview=completion.text,
            fallback=False,
            tokens_generated=completion.stats.eval_count if completion.stats else None,
            purpose="summary",
        )
        document.summary = completion.text.strip()
        return document.summary


_collection: Optional[DocumentCollection] = None


def get_document_collection() -> DocumentCollection:
    global _collection
    if _collection is None:
        _collection = DocumentCollection.from_settings(get_settings())
    return _collection


__all__ = ["DocumentCollection", "get_document_collection"]
