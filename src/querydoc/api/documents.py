"""API router for uploading and managing documents."""
from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from querydoc.api.schemas import ChunkModel, DocumentModel, serialise_chunk, serialise_document
from querydoc.errors import (
    DocumentNotFoundError,
    ExtractionError,
    OCRUnavailableError,
    ScannedDocumentError,
)
from querydoc.llm.base import LLMError
from querydoc.services.chat import ChatService, get_chat_service
from querydoc.services.documents import DocumentCollection, get_document_collection

router = APIRouter(prefix="/documents", tags=["documents"])


class DocumentDetail(DocumentModel):
    chunks: list[ChunkModel]


class PageRequest(BaseModel):
    page: int = Field(..., ge=1, description="1-based page number to display.")


class SummaryResponse(BaseModel):
    document_id: str
    summary: str


def _serialise(documents: DocumentCollection, document_id: str) -> DocumentModel:
    document = documents.get(document_id)
    return serialise_document(document, active=documents.active_document_id == document.id)


def _extraction_error(exc: ExtractionError) -> HTTPException:
    if isinstance(exc, ScannedDocumentError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, OCRUnavailableError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


@router.post("", response_model=DocumentModel, status_code=201)
async def upload_document(
    file: UploadFile = File(...),
    ocr: bool = Query(False, description="Run OCR before extracting text."),
    documents: DocumentCollection = Depends(get_document_collection),
) -> DocumentModel:
    """Ingest one PDF and make it the active document."""

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    name = Path(file.filename or "document.pdf").name
    try:
        document = await run_in_threadpool(documents.add, name, data, ocr=ocr)
    except ExtractionError as exc:
        raise _extraction_error(exc) from exc
    return _serialise(documents, document.id)


@router.get("", response_model=list[DocumentModel])
def list_documents(
    documents: DocumentCollection = Depends(get_document_collection),
) -> list[DocumentModel]:
    active = documents.active_document_id
    return [serialise_document(document, active=document.id == active) for document in documents.list()]


@router.get("/{document_id}", response_model=DocumentDetail)
def get_document(
    document_id: str,
    documents: DocumentCollection = Depends(get_document_collection),
) -> DocumentDetail:
    try:
        document = documents.get(document_id)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    summary = serialise_document(document, active=documents.active_document_id == document.id)
    return DocumentDetail(
        **summary.model_dump(),
        chunks=[serialise_chunk(chunk) for chunk in document.chunks],
    )


@router.delete("/{document_id}", status_code=204)
def delete_document(
    document_id: str,
    documents: DocumentCollection = Depends(get_document_collection),
) -> Response:
    try:
        documents.remove(document_id)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@router.post("/{document_id}/ocr", response_model=DocumentModel)
async def run_document_ocr(
    document_id: str,
    documents: DocumentCollection = Depends(get_document_collection),
) -> DocumentModel:
    """Re-extract a scanned document through OCR."""

    try:
        document = await run_in_threadpool(documents.run_ocr, document_id)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ExtractionError as exc:
        raise _extraction_error(exc) from exc
    return _serialise(documents, document.id)


@router.post("/{document_id}/summary", response_model=SummaryResponse)
async def summarise_document(
    document_id: str,
    documents: DocumentCollection = Depends(get_document_collection),
    chat: ChatService = Depends(get_chat_service),
) -> SummaryResponse:
    model = chat.selected_model
    try:
        summary = await documents.summarize(document_id, chat.backend_for(model), model)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except LLMError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return SummaryResponse(document_id=document_id, summary=summary)


@router.put("/{document_id}/page", response_model=DocumentModel)
def set_current_page(
    document_id: str,
    request: PageRequest,
    documents: DocumentCollection = Depends(get_document_collection),
) -> DocumentModel:
    try:
        documents.set_current_page(document_id, request.page)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _serialise(documents, document_id)


@router.put("/{document_id}/active", response_model=DocumentModel)
def activate_document(
    document_id: str,
    documents: DocumentCollection = Depends(get_document_collection),
) -> DocumentModel:
    try:
        documents.set_active(document_id)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _serialise(documents, document_id)
