import logging
from typing import Any

from fastapi import Depends, FastAPI
from fastapi.responses import PlainTextResponse

from querydoc.api import chat_router, documents_router, models_router, proxy_router
from querydoc.api.proxy import close_proxy_client
from querydoc.llm.provider import close_backends
from querydoc.logging_config import configure_logging
from querydoc.services.chat import ChatService, get_chat_service
from querydoc.telemetry import emit_app_startup_event

configure_logging()

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="QueryDoc API")
app.include_router(documents_router)
app.include_router(chat_router)
app.include_router(models_router)
app.include_router(proxy_router)


@app.on_event("startup")
async def _startup() -> None:
    emit_app_startup_event()


@app.on_event("shutdown")
async def _shutdown() -> None:
    await close_backends()
    await close_proxy_client()


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Healthcheck endpoint for the service."""
    return "ok"


@app.get("/healthz")
async def healthcheck(chat: ChatService = Depends(get_chat_service)) -> dict[str, Any]:
    """Report local inference reachability and cloud quota usage."""

    local_available = await chat.local_backend.is_available()
    if not local_available:
        LOGGER.info("Local inference server unreachable; questions will fall back to the cloud")
    counter = chat.usage_counter
    return {
        "status": "ok",
        "local_backend": local_available,
        "selected_model": chat.selected_model,
        "cloud_usage": {
            "used": counter.get(),
            "limit": counter.limit,
            "remaining": counter.remaining(),
        },
    }
