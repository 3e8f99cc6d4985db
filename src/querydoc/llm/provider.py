"""Process-wide backend instances built from :class:`~querydoc.config.Settings`."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from querydoc.config import Settings, get_settings

from .base import LLMBackend
from .groq import GroqBackend
from .mock import MockLLMBackend
from .ollama import OllamaBackend

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Backends:
    local: LLMBackend
    cloud: LLMBackend

    async def aclose(self) -> None:
        await self.local.aclose()
        await self.cloud.aclose()


def build_backends(settings: Settings) -> Backends:
    if settings.llm_stub:
        LOGGER.warning("LLM_STUB flag enabled; using mock backends only.")
        return Backends(
            local=MockLLMBackend(name="mock-local"),
            cloud=MockLLMBackend(name="mock-cloud", is_cloud=True),
        )
    return Backends(
        local=OllamaBackend(settings.ollama_url, timeout=settings.llm_timeout),
        cloud=GroqBackend(settings.groq_proxy_url, timeout=settings.llm_timeout),
    )


_BACKENDS: Optional[Backends] = None


def get_backends() -> Backends:
    """Return the lazily created backends shared by the whole process."""

    global _BACKENDS
    if _BACKENDS is None:
        _BACKENDS = build_backends(get_settings())
    return _BACKENDS


async def close_backends() -> None:
    global _BACKENDS
    if _BACKENDS is not None:
        await _BACKENDS.aclose()
        _BACKENDS = None


__all__ = ["Backends", "build_backends", "close_backends", "get_backends"]
