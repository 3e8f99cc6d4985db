"""Centralised observability helpers for structured lifecycle logging."""

from __future__ import annotations

import logging
import os
import platform
import sys
import time
import traceback
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Optional

LOGGER = logging.getLogger("querydoc.telemetry")

_ENV_KEYS_TO_LOG: tuple[str, ...] = (
    "OLLAMA_URL",
    "GROQ_PROXY_URL",
    "DEFAULT_MODEL",
    "FALLBACK_MODEL",
    "CLOUD_QUOTA_LIMIT",
    "CHUNK_SIZE",
    "CHUNK_OVERLAP",
    "OCR_LANG",
    "MAX_PAGES",
    "LLM_STUB",
)


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    req_id: str | None = None,
    document_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if req_id:
        event["req_id"] = req_id
    if document_id:
        event["document_id"] = document_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = _format_exception(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = str(exc)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_app_startup_event() -> None:
    env_values = {key: os.getenv(key) for key in _ENV_KEYS_TO_LOG if os.getenv(key) is not None}
    details = {
        "env": env_values,
        "python": sys.version.split()[0],
        "platform": platform.platform(),
    }
    log_event(LOGGER, "app.startup", details=details)


def emit_ingest_event(
    step: str,
    *,
    file_name: str,
    document_id: str | None = None,
    size_bytes: int | None = None,
    duration_ms: float | None = None,
    pages: int | None = None,
    ocr: bool | None = None,
    scanned: bool | None = None,
    chunks: int | None = None,
) -> None:
    details = {
        "file": file_name,
        "size_bytes": size_bytes,
        "pages": pages,
        "ocr": ocr,
        "scanned": scanned,
        "chunks": chunks,
    }
    log_event(LOGGER, step, document_id=document_id, duration_ms=duration_ms, details=details)


def emit_retriever_event(
    *,
    query: str,
    top_k: int,
    results: list[dict[str, Any]],
    duration_ms: float,
) -> None:
    details = {
        "query_preview": query[:120],
        "top_k": top_k,
        "results": results,
    }
    log_event(LOGGER, "retriever.search", duration_ms=duration_ms, details=details)


def emit_prompt_event(
    *,
    sources: Iterable[str],
    prompt_len: int,
    history_turns: int,
) -> None:
    details = {
        "sources": list(sources),
        "prompt_len": prompt_len,
        "history_turns": history_turns,
    }
    log_event(LOGGER, "prompt.compose", details=details)


def emit_inference_request(
    *,
    req_id: str,
    provider: str,
    model: str,
    prompt_preview: str,
    prompt_len: int,
    purpose: str = "answer",
) -> None:
    details = {
        "provider": provider,
        "model": model,
        "purpose": purpose,
        "prompt_preview": prompt_preview[:120],
        "prompt_len": prompt_len,
    }
    log_event(LOGGER, "inference.request", req_id=req_id, details=details)


def emit_inference_result(
    *,
    req_id: str,
    provider: str,
    model: str,
    duration_ms: float,
    answer_preview: str,
    fallback: bool,
    tokens_generated: int | None,
    purpose: str = "answer",
) -> None:
    details = {
        "provider": provider,
        "model": model,
        "purpose": purpose,
        "answer_preview": answer_preview[:120],
        "fallback": fallback,
        "tokens_generated": tokens_generated,
    }
    log_event(LOGGER, "inference.result", req_id=req_id, duration_ms=duration_ms, details=details)


def emit_provider_fallback(*, req_id: str, requested_model: str, fallback_model: str, remaining: int) -> None:
    details = {
        "requested_model": requested_model,
        "fallback_model": fallback_model,
        "quota_remaining": remaining,
    }
    log_event(LOGGER, "provider.fallback", level="warning", req_id=req_id, details=details)


def emit_quota_event(step: str, *, used: int, limit: int, req_id: str | None = None) -> None:
    level = "warning" if used >= limit else "info"
    log_event(LOGGER, step, level=level, req_id=req_id, details={"used": used, "limit": limit})


def emit_exception(
    *,
    module: str,
    error: BaseException,
    req_id: str | None = None,
    document_id: str | None = None,
    suggestion: str | None = None,
) -> None:
    details = {"module": module}
    if suggestion:
        details["suggestion"] = suggestion
    log_event(
        LOGGER,
        "exception",
        level="error",
        req_id=req_id,
        document_id=document_id,
        details=details,
        exc=error,
    )


@contextmanager
def traced_duration(step: str, *, logger: Optional[logging.Logger] = None, **fields: Any) -> Iterator[None]:
    start = time.perf_counter()
    log_event(logger or LOGGER, f"{step}.start", details=fields)
    try:
        yield
    except Exception as error:
        log_event(logger or LOGGER, f"{step}.error", level="error", details=fields, exc=error)
        raise
    finally:
        end = time.perf_counter()
        log_event(
            logger or LOGGER,
            f"{step}.complete",
            duration_ms=(end - start) * 1000.0,
            details=fields,
        )
