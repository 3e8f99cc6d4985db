"""Pydantic models shared by the API routers."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from querydoc.ingest.models import Chunk, ManagedDocument
from querydoc.services.chat import Message, TurnResult


class RectModel(BaseModel):
    left: float
    top: float
    width: float
    height: float


class ChunkModel(BaseModel):
    """A cited document segment."""

    chunk_id: str
    text: str
    page_number: int
    chunk_index: int
    document_id: Optional[str] = None
    document_name: Optional[str] = None
    rects: Optional[list[RectModel]] = None


class DocumentModel(BaseModel):
    id: str
    name: str
    total_pages: int
    chunk_count: int
    current_page: int
    ocr_performed: bool
    summary: Optional[str] = None
    active: bool = False


class MessageModel(BaseModel):
    id: str
    role: str
    content: str
    timestamp: datetime
    page_number: Optional[int] = None
    source_chunks: Optional[list[ChunkModel]] = None
    stats: Optional[dict[str, Optional[int]]] = None


class TurnResponse(BaseModel):
    """Outcome of one question-answering turn."""

    state: str
    model: str
    switched_model: Optional[str] = Field(
        None, description="Cloud model used for this turn after the local server was unreachable."
    )
    messages: list[MessageModel]
    jump_target: Optional[ChunkModel] = None


def serialise_chunk(chunk: Chunk) -> ChunkModel:
    rects = None
    if chunk.rects is not None:
        rects = [
            RectModel(left=rect.left, top=rect.top, width=rect.width, height=rect.height)
            for rect in chunk.rects
        ]
    return ChunkModel(
        chunk_id=chunk.chunk_id,
        text=chunk.text,
        page_number=chunk.page_number,
        chunk_index=chunk.chunk_index,
        document_id=chunk.document_id,
        document_name=chunk.document_name,
        rects=rects,
    )


def serialise_document(document: ManagedDocument, *, active: bool = False) -> DocumentModel:
    return DocumentModel(
        id=document.id,
        name=document.name,
        total_pages=document.total_pages,
        chunk_count=len(document.chunks),
        current_page=document.current_page,
        ocr_performed=document.ocr_performed,
        summary=document.summary,
        active=active,
    )


def serialise_message(message: Message) -> MessageModel:
    sources = None
    if message.source_chunks is not None:
        sources = [serialise_chunk(chunk) for chunk in message.source_chunks]
    return MessageModel(
        id=message.id,
        role=message.role,
        content=message.content,
        timestamp=message.timestamp,
        page_number=message.page_number,
        source_chunks=sources,
        stats=message.stats.as_dict() if message.stats is not None else None,
    )


def serialise_turn(result: TurnResult) -> TurnResponse:
    return TurnResponse(
        state=result.state.value,
        model=result.model,
        switched_model=result.switched_model,
        messages=[serialise_message(message) for message in result.messages],
        jump_target=serialise_chunk(result.jump_target) if result.jump_target is not None else None,
    )
