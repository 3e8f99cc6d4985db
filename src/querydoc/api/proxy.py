"""Same-origin proxy that adds the cloud credential to inference requests."""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from querydoc.config import Settings, get_settings
from querydoc.telemetry import emit_exception

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["proxy"])

_client: Optional[httpx.AsyncClient] = None


def get_proxy_client() -> httpx.AsyncClient:
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=httpx.Timeout(get_settings().llm_timeout, connect=10.0))
    return _client


async def close_proxy_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def _upstream_error(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"error": response.text or response.reason_phrase}


@router.post("/groq")
async def groq_proxy(
    request: Request,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_proxy_client),
):
    """Relay ``{prompt, model}`` to the cloud chat-completions endpoint as an event stream."""

    if not settings.groq_api_key:
        return JSONResponse({"error": "Groq API key not configured"}, status_code=500)

    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        return JSONResponse({"error": "Request body must be a JSON object"}, status_code=400)

    payload = {
        "model": body.get("model"),
        "messages": [{"role": "user", "content": body.get("prompt", "")}],
        "stream": True,
    }
    upstream = client.build_request(
        "POST",
        settings.groq_api_url,
        json=payload,
        headers={"Authorization": f"Bearer {settings.groq_api_key}"},
    )
    try:
        response = await client.send(upstream, stream=True)
    except httpx.HTTPError as error:
        emit_exception(module=f"{__name__}.groq", error=error)
        return JSONResponse({"error": str(error)}, status_code=500)

    if response.is_error:
        await response.aread()
        await response.aclose()
        LOGGER.warning("Cloud API rejected request with status %s", response.status_code)
        return JSONResponse(_upstream_error(response), status_code=response.status_code)

    return StreamingResponse(
        response.aiter_raw(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        background=BackgroundTask(response.aclose),
    )
