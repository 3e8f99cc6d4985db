"""API router for question answering over the loaded documents."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from querydoc.api.schemas import MessageModel, TurnResponse, serialise_message, serialise_turn
from querydoc.services.chat import ChatService, get_chat_service

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

_TURN_FINISHED = object()


class AskRequest(BaseModel):
    """Request body accepted by the ask and stream endpoints."""

    question: str = Field(..., min_length=1, description="Question about the loaded documents.")
    model: Optional[str] = Field(None, description="Model id overriding the selected model for this turn.")


def _ensure_ready(chat: ChatService, question: str) -> None:
    if not question.strip():
        raise HTTPException(status_code=422, detail="Question must not be empty")
    if chat.busy:
        raise HTTPException(status_code=409, detail="A question is already being answered")


def _ndjson(event: dict[str, Any]) -> bytes:
    return (json.dumps(event, default=str) + "\n").encode("utf-8")


@router.post("/ask", response_model=TurnResponse)
async def ask_question(
    request: AskRequest,
    chat: ChatService = Depends(get_chat_service),
) -> TurnResponse:
    """Answer a question and return every message the turn appended."""

    _ensure_ready(chat, request.question)
    result = await chat.ask(request.question, model=request.model)
    if result is None:
        raise HTTPException(status_code=409, detail="A question is already being answered")
    return serialise_turn(result)


async def _stream_turn(chat: ChatService, request: AskRequest) -> AsyncIterator[bytes]:
    queue: asyncio.Queue[Any] = asyncio.Queue()

    async def on_token(token: str) -> None:
        await queue.put(token)

    task = asyncio.create_task(chat.ask(request.question, model=request.model, on_token=on_token))
    task.add_done_callback(lambda _: queue.put_nowait(_TURN_FINISHED))

    while True:
        item = await queue.get()
        if item is _TURN_FINISHED:
            break
        yield _ndjson({"type": "token", "content": item})

    result = task.result()
    if result is None:
        yield _ndjson({"type": "done", "state": "busy"})
        return

    turn = serialise_turn(result)
    for message in turn.messages:
        yield _ndjson({"type": "message", "message": message.model_dump(mode="json")})
    yield _ndjson(
        {
            "type": "done",
            "state": turn.state,
            "model": turn.model,
            "switched_model": turn.switched_model,
            "jump_target": turn.jump_target.model_dump(mode="json") if turn.jump_target else None,
        }
    )


@router.post("/stream")
async def stream_question(
    request: AskRequest,
    chat: ChatService = Depends(get_chat_service),
) -> StreamingResponse:
    """Answer a question, streaming tokens as newline-delimited JSON events."""

    _ensure_ready(chat, request.question)
    return StreamingResponse(_stream_turn(chat, request), media_type="application/x-ndjson")


@router.get("/messages", response_model=list[MessageModel])
def list_messages(chat: ChatService = Depends(get_chat_service)) -> list[MessageModel]:
    return [serialise_message(message) for message in chat.messages]


@router.delete("/messages", status_code=204)
def clear_messages(chat: ChatService = Depends(get_chat_service)) -> Response:
    try:
        chat.clear()
    except RuntimeError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    LOGGER.info("Conversation cleared")
    return Response(status_code=204)
