"""Question-answering turns: provider selection, streaming, pinpointing, transcript."""
from __future__ import annotations

import dataclasses
import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, Union

from querydoc.config import get_settings
from querydoc.errors import NoRelevantContentError, QuotaExceededError
from querydoc.ingest.models import Chunk
from querydoc.llm.base import Completion, GenerationStats, LLMBackend, TokenCallback, maybe_await
from querydoc.llm.catalog import SMALLEST_LOCAL_MODEL, find_model, is_cloud_model
from querydoc.llm.provider import get_backends
from querydoc.logging_config import AUDIT_LOGGER_NAME
from querydoc.prompt_builder import PINPOINT_NONE, build_pinpoint_prompt, build_prompt
from querydoc.quota import UsageCounter, build_usage_counter
from querydoc.retriever import find_relevant_chunks
from querydoc.services.documents import get_document_collection
from querydoc.telemetry import (
    emit_exception,
    emit_inference_request,
    emit_inference_result,
    emit_prompt_event,
    emit_provider_fallback,
    emit_quota_event,
)

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)

ANSWER_TOP_K = 15
HISTORY_WINDOW = 4
PINPOINT_MAX_CHUNKS = 5

MEMORY_HINT = (
    f"Tip: the model may not fit in the available memory. Try a smaller model such as "
    f"{SMALLEST_LOCAL_MODEL}."
)
_MEMORY_ERROR_RE = re.compile(r"memory|\boom\b|resource", re.IGNORECASE)
_QUOTES = "\"'`“”‘’"

SourceListener = Callable[[Chunk], None]
ChunkSource = Union[Callable[[], Sequence[Chunk]], Sequence[Chunk]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TurnState(str, Enum):
    IDLE = "idle"
    PROVIDER_CHECK = "provider_check"
    FALLBACK = "fallback"
    QUERYING = "querying"
    STREAMING = "streaming"
    PINPOINTING = "pinpointing"
    COMMITTED = "committed"
    ERRORED = "errored"


@dataclass(frozen=True, slots=True)
class Message:
    """One immutable transcript entry."""

    id: str
    role: str
    content: str
    timestamp: datetime = field(default_factory=_utcnow)
    page_number: Optional[int] = None
    source_chunks: Optional[Tuple[Chunk, ...]] = None
    stats: Optional[GenerationStats] = None

    @classmethod
    def create(cls, role: str, content: str, **kwargs: object) -> "Message":
        return cls(id=uuid.uuid4().hex, role=role, content=content, **kwargs)  # type: ignore[arg-type]


@dataclass(slots=True)
class TurnResult:
    """Messages appended by one turn and how the turn ended."""

    state: TurnState
    model: str
    messages: List[Message] = field(default_factory=list)
    switched_model: Optional[str] = None
    jump_target: Optional[Chunk] = None

    @property
    def reply(self) -> Optional[Message]:
        return self.messages[-1] if self.messages and self.messages[-1].role == "assistant" else None


def pinpoint_chunk(chunk: Chunk, phrase: str) -> Optional[Chunk]:
    """Return a copy of *chunk* whose rects cover only *phrase*.

    Needs one rect per word of the chunk text, which is what layout-aware
    segmentation produces; anything else yields ``None``.
    """

    if not chunk.rects or not phrase:
        return None
    if len(chunk.text.split()) != len(chunk.rects):
        return None

    match = re.search(re.escape(phrase), chunk.text, re.IGNORECASE)
    if match is None:
        return None

    prefix = chunk.text[: match.start()]
    start = len(prefix.split())
    if prefix and not prefix[-1].isspace():
        start -= 1
    end = len(chunk.text[: match.end()].split())
    rects = chunk.rects[start:end]
    if not rects:
        return None
    return dataclasses.replace(chunk, rects=rects)


def _clean_phrase(raw: str) -> str:
    lines = [line.strip() for line in raw.strip().splitlines() if line.strip()]
    if not lines:
        return ""
    phrase = lines[0]
    if phrase.lower().startswith("supporting text:"):
        phrase = phrase[len("supporting text:"):].strip()
    phrase = phrase.strip(_QUOTES).strip()
    return "" if phrase.upper() == PINPOINT_NONE else phrase


def describe_error(error: BaseException) -> str:
    message = str(error).strip() or "Unknown error occurred"
    text = f"Error: {message}"
    if _MEMORY_ERROR_RE.search(message):
        text = f"{text} {MEMORY_HINT}"
    return text


class ChatService:
    """Drives question-answering turns over the loaded documents.

    At most one turn runs at a time; a question submitted while a turn is in
    flight is ignored. The transcript is append-only.
    """

    def __init__(
        self,
        *,
        local_backend: LLMBackend,
        cloud_backend: LLMBackend,
        usage_counter: UsageCounter,
        chunk_source: ChunkSource,
        selected_model: str = "qwen2.5:3b",
        fallback_model: str = "llama-3.1-8b-instant",
        top_k: int = ANSWER_TOP_K,
        history_window: int = HISTORY_WINDOW,
    ) -> None:
        self.local_backend = local_backend
        self.cloud_backend = cloud_backend
        self.usage_counter = usage_counter
        self.selected_model = selected_model
        self.fallback_model = fallback_model
        self.top_k = top_k
        self.history_window = history_window
        self.state = TurnState.IDLE
        self.streaming_content = ""
        self._chunk_source = chunk_source
        self._messages: List[Message] = []
        self._listeners: List[SourceListener] = []
        self._busy = False

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def busy(self) -> bool:
        return self._busy

    def add_source_listener(self, listener: SourceListener) -> None:
        self._listeners.append(listener)

    def backend_for(self, model: str) -> LLMBackend:
        return self.cloud_backend if is_cloud_model(model) else self.local_backend

    def clear(self) -> None:
        if self._busy:
            raise RuntimeError("Cannot clear the conversation while a question is being answered")
        self._messages.clear()
        self.state = TurnState.IDLE

    async def ask(
        self,
        question: str,
        *,
        model: Optional[str] = None,
        on_token: Optional[TokenCallback] = None,
    ) -> Optional[TurnResult]:
        """Answer *question*; returns ``None`` when blank or while another turn runs."""

        question = question.strip()
        if not question or self._busy:
            return None

        self._busy = True
        try:
            return await self._run_turn(question, model or self.selected_model, on_token)
        finally:
            self._busy = False
            self.streaming_content = ""

    async def _run_turn(
        self, question: str, requested_model: str, on_token: Optional[TokenCallback]
    ) -> TurnResult:
        req_id = uuid.uuid4().hex
        turn = TurnResult(state=TurnState.PROVIDER_CHECK, model=requested_model)
        history = self._messages[-self.history_window:] if self.history_window > 0 else []
        self._append(turn, Message.create("user", question))

        self.state = TurnState.PROVIDER_CHECK
        use_cloud = is_cloud_model(requested_model)
        if not use_cloud and not await self.local_backend.is_available():
            quota_error = self._check_quota(req_id)
            if quota_error is not None:
                return self._fail(turn, f"Error: Cannot connect to the local model server. {quota_error}")
            self._switch_to_fallback(turn, requested_model, req_id)
            use_cloud = True

        if use_cloud:
            quota_error = self._check_quota(req_id)
            if quota_error is not None:
                return self._fail(turn, f"Error: {quota_error}")

        backend = self.cloud_backend if use_cloud else self.local_backend
        try:
            self.state = TurnState.QUERYING
            chunks = find_relevant_chunks(question, self._chunks(), self.top_k, history)
            if not chunks:
                raise NoRelevantContentError()
            prompt = build_prompt(question, chunks, history)
            emit_prompt_event(
                sources=[chunk.chunk_id for chunk in chunks],
                prompt_len=len(prompt),
                history_turns=len(history),
            )
            self.state = TurnState.STREAMING
            completion = await self._generate(
                backend,
                prompt,
                turn.model,
                req_id,
                on_token,
                fallback=turn.switched_model is not None,
            )
        except Exception as error:
            emit_exception(module=f"{__name__}.answer", error=error, req_id=req_id)
            return self._fail(turn, describe_error(error))

        if use_cloud:
            used = self.usage_counter.increment()
            emit_quota_event("quota.increment", used=used, limit=self.usage_counter.limit, req_id=req_id)

        self.state = TurnState.PINPOINTING
        sources = await self._pinpoint(backend, turn.model, completion.text, chunks, req_id)
        return self._commit(turn, completion, sources, question, req_id)

    def _check_quota(self, req_id: str) -> Optional[QuotaExceededError]:
        if not self.usage_counter.exhausted():
            return None
        used, limit = self.usage_counter.get(), self.usage_counter.limit
        emit_quota_event("quota.exhausted", used=used, limit=limit, req_id=req_id)
        return QuotaExceededError(used, limit)

    def _switch_to_fallback(self, turn: TurnResult, requested_model: str, req_id: str) -> None:
        self.state = TurnState.FALLBACK
        remaining = self.usage_counter.remaining()
        turn.model = self.fallback_model
        turn.switched_model = self.fallback_model
        emit_provider_fallback(
            req_id=req_id,
            requested_model=requested_model,
            fallback_model=self.fallback_model,
            remaining=remaining,
        )
        info = find_model(self.fallback_model)
        label = info.name if info is not None else self.fallback_model
        self._append(
            turn,
            Message.create(
                "assistant",
                f"The local model server is unreachable, so this question is answered by {label}. "
                f"This uses 1 of your {remaining} remaining free cloud requests.",
            ),
        )

    async def _generate(
        self,
        backend: LLMBackend,
        prompt: str,
        model: str,
        req_id: str,
        on_token: Optional[TokenCallback],
        *,
        fallback: bool,
    ) -> Completion:
        async def forward(token: str) -> None:
            self.streaming_content += token
            if on_token is not None:
                await maybe_await(on_token(token))

        emit_inference_request(
            req_id=req_id,
            provider=backend.name,
            model=model,
            prompt_preview=prompt,
            prompt_len=len(prompt),
        )
        started = time.perf_counter()
        completion = await backend.generate(prompt, model, forward)
        emit_inference_result(
            req_id=req_id,
            provider=backend.name,
            model=model,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            answer_preview=completion.text,
            fallback=fallback,
            tokens_generated=completion.stats.eval_count if completion.stats else None,
        )
        return completion

    async def _pinpoint(
        self,
        backend: LLMBackend,
        model: str,
        answer: str,
        chunks: Sequence[Chunk],
        req_id: str,
    ) -> List[Chunk]:
        sources = list(chunks)
        candidates = sources[:PINPOINT_MAX_CHUNKS]
        if not answer.strip() or not any(chunk.rects for chunk in candidates):
            return sources

        try:
            emit_inference_request(
                req_id=req_id,
                provider=backend.name,
                model=model,
                prompt_preview=answer,
                prompt_len=len(answer),
                purpose="pinpoint",
            )
            completion = await backend.generate(build_pinpoint_prompt(answer, candidates), model)
            phrase = _clean_phrase(completion.text)
            for index, chunk in enumerate(candidates):
                narrowed = pinpoint_chunk(chunk, phrase)
                if narrowed is not None:
                    LOGGER.debug("Pinpointed %s to %s rects", chunk.chunk_id, len(narrowed.rects or ()))
                    return [narrowed] + sources[:index] + sources[index + 1:]
        except Exception as error:
            LOGGER.debug("Pinpoint pass failed for request %s: %s", req_id, error)
        return sources

    def _commit(
        self,
        turn: TurnResult,
        completion: Completion,
        sources: List[Chunk],
        question: str,
        req_id: str,
    ) -> TurnResult:
        top = sources[0]
        self._append(
            turn,
            Message.create(
                "assistant",
                completion.text,
                page_number=top.page_number,
                source_chunks=tuple(sources),
                stats=completion.stats,
            ),
        )
        turn.jump_target = top
        turn.state = TurnState.COMMITTED
        self.state = TurnState.COMMITTED
        AUDIT_LOGGER.info(
            {
                "event": "answer",
                "req_id": req_id,
                "question": question,
                "model": turn.model,
                "switched": turn.switched_model is not None,
                "sources": [chunk.chunk_id for chunk in sources],
            }
        )
        for listener in self._listeners:
            try:
                listener(top)
            except Exception:
                LOGGER.exception("Source listener %r failed", listener)
        return turn

    def _fail(self, turn: TurnResult, content: str) -> TurnResult:
        self._append(turn, Message.create("assistant", content))
        turn.state = TurnState.ERRORED
        self.state = TurnState.ERRORED
        return turn

    def _append(self, turn: TurnResult, message: Message) -> None:
        self._messages.append(message)
        turn.messages.append(message)

    def _chunks(self) -> Sequence[Chunk]:
        source = self._chunk_source
        return source() if callable(source) else source


_chat_service: Optional[ChatService] = None


def get_chat_service() -> ChatService:
    """Return the process-wide chat service wired to the shared documents."""

    global _chat_service
    if _chat_service is None:
        settings = get_settings()
        backends = get_backends()
        documents = get_document_collection()
        _chat_service = ChatService(
            local_backend=backends.local,
            cloud_backend=backends.cloud,
            usage_counter=build_usage_counter(settings),
            chunk_source=documents.all_chunks,
            selected_model=settings.default_model,
            fallback_model=settings.fallback_model,
        )
        _chat_service.add_source_listener(documents.show_source)
    return _chat_service


__all__ = [
    "ANSWER_TOP_K",
    "ChatService",
    "HISTORY_WINDOW",
    "MEMORY_HINT",
    "Message",
    "TurnResult",
    "TurnState",
    "describe_error",
    "get_chat_service",
    "pinpoint_chunk",
]
