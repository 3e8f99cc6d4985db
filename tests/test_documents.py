from typing import List

import pytest

from querydoc.errors import DocumentNotFoundError, ScannedDocumentError
from querydoc.ingest import IngestPipeline, IngestPipelineConfig, PageText, PDFExtractionResult
from querydoc.llm import MockLLMBackend
from querydoc.services.documents import DocumentCollection

TEXT_PAGE = "This agreement sets the payment deadline to March 1st. " * 3


class _StubExtractor:
    """Returns canned pages; scanned until OCR is requested."""

    def __init__(self, pages: List[PageText], ocr_pages: List[PageText] | None = None) -> None:
        self.pages = pages
        self.ocr_pages = ocr_pages
        self.calls: list[bool] = []

    def extract(self, data: bytes, *, ocr: bool = False) -> PDFExtractionResult:
        self.calls.append(ocr)
        pages = self.ocr_pages if ocr and self.ocr_pages is not None else self.pages
        return PDFExtractionResult(pages=list(pages), total_pages=len(pages), ocr_performed=ocr)


def _collection(extractor: _StubExtractor) -> DocumentCollection:
    return DocumentCollection(IngestPipeline(IngestPipelineConfig(), extractor=extractor))


def test_add_document_activates_it() -> None:
    documents = _collection(_StubExtractor([PageText(1, TEXT_PAGE), PageText(2, TEXT_PAGE)]))

    first = documents.add("first.pdf", b"%PDF-first")
    second = documents.add("second.pdf", b"%PDF-second")

    assert documents.active_document_id == second.id
    assert [document.name for document in documents.list()] == ["first.pdf", "second.pdf"]
    assert first.total_pages == 2
    assert {chunk.document_id for chunk in first.chunks} == {first.id}
    assert {chunk.document_name for chunk in first.chunks} == {"first.pdf"}
    assert len(documents.all_chunks()) == len(first.chunks) + len(second.chunks)


def test_scanned_document_requires_ocr() -> None:
    extractor = _StubExtractor([PageText(1, "")], ocr_pages=[PageText(1, TEXT_PAGE)])
    documents = _collection(extractor)

    with pytest.raises(ScannedDocumentError):
        documents.add("scan.pdf", b"%PDF-scan")
    assert documents.list() == []

    document = documents.add("scan.pdf", b"%PDF-scan", ocr=True)
    assert document.ocr_performed is True
    assert document.chunks
    assert extractor.calls == [False, True]


def test_run_ocr_keeps_identity_and_page() -> None:
    pages = [PageText(1, TEXT_PAGE), PageText(2, TEXT_PAGE)]
    documents = _collection(_StubExtractor(pages, ocr_pages=pages))
    document = documents.add("doc.pdf", b"%PDF")
    documents.set_current_page(document.id, 2)

    refreshed = documents.run_ocr(document.id)

    assert refreshed.id == document.id
    assert refreshed.ocr_performed is True
    assert refreshed.current_page == 2
    assert documents.get(document.id) is refreshed


def test_page_bounds_and_unknown_documents() -> None:
    documents = _collection(_StubExtractor([PageText(1, TEXT_PAGE)]))
    document = documents.add("doc.pdf", b"%PDF")

    with pytest.raises(ValueError):
        documents.set_current_page(document.id, 2)
    with pytest.raises(DocumentNotFoundError):
        documents.get("missing")
    with pytest.raises(DocumentNotFoundError):
        documents.remove("missing")


def test_remove_moves_active_document() -> None:
    documents = _collection(_StubExtractor([PageText(1, TEXT_PAGE)]))
    first = documents.add("a.pdf", b"%PDF-a")
    second = documents.add("b.pdf", b"%PDF-b")

    documents.remove(second.id)

    assert documents.active_document_id == first.id
    documents.remove(first.id)
    assert documents.active_document_id is None
    assert documents.all_chunks() == []


def test_show_source_turns_to_cited_page() -> None:
    documents = _collection(_StubExtractor([PageText(1, TEXT_PAGE), PageText(2, TEXT_PAGE)]))
    first = documents.add("a.pdf", b"%PDF-a")
    documents.add("b.pdf", b"%PDF-b")
    cited = next(chunk for chunk in first.chunks if chunk.page_number == 2)

    documents.show_source(cited)

    assert documents.active_document_id == first.id
    assert first.current_page == 2


@pytest.mark.anyio
async def test_summarize_stores_summary() -> None:
    documents = _collection(_StubExtractor([PageText(1, TEXT_PAGE)]))
    document = documents.add("doc.pdf", b"%PDF")
    backend = MockLLMBackend(["  Main topic: payment terms.  "])

    summary = await documents.summarize(document.id, backend, "gemma2:2b")

    assert summary == "Main topic: payment terms."
    assert document.summary == summary
    prompt, model = backend.calls[0]
    assert model == "gemma2:2b"
    assert "March 1st" in prompt


def test_all_chunks_tolerates_an_upload_landing_mid_read() -> None:
    documents = _collection(_StubExtractor([PageText(1, TEXT_PAGE)]))
    first = documents.add("first.pdf", b"%PDF-first")
    expected = list(first.chunks)

    class _UploadDuringIteration(list):
        def __iter__(self):
            # stands in for a threadpool upload finishing while a turn ranks chunks
            documents.add("second.pdf", b"%PDF-second")
            return super().__iter__()

    first.chunks = _UploadDuringIteration(expected)

    chunks = documents.all_chunks()

    assert chunks == expected
    assert [document.name for document in documents.list()] == ["first.pdf", "second.pdf"]
