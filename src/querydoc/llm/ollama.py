"""Client for a local Ollama-compatible inference server."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from .base import (
    Completion,
    GenerationStats,
    LLMBackend,
    LLMGenerationError,
    LLMUnavailableError,
    TokenCallback,
    maybe_await,
)

LOGGER = logging.getLogger(__name__)

_PROBE_TIMEOUT = httpx.Timeout(5.0)


class OllamaBackend(LLMBackend):
    """Streams ``/api/generate`` newline-delimited JSON responses."""

    name = "ollama"
    is_cloud = False

    def __init__(
        self,
        base_url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))

    async def is_available(self) -> bool:
        try:
            response = await self._client.get(f"{self.base_url}/api/tags", timeout=_PROBE_TIMEOUT)
        except (httpx.HTTPError, httpx.InvalidURL) as error:
            LOGGER.info("Ollama liveness probe failed: %s", error)
            return False
        return response.is_success

    async def generate(
        self,
        prompt: str,
        model: str,
        on_token: Optional[TokenCallback] = None,
    ) -> Completion:
        payload = {"model": model, "prompt": prompt, "stream": True}
        pieces: list[str] = []
        try:
            async with self._client.stream(
                "POST", f"{self.base_url}/api/generate", json=payload
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise LLMGenerationError(self._error_message(response))

                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError:
                        LOGGER.debug("Skipping malformed Ollama line: %r", line[:200])
                        continue

                    if data.get("error"):
                        raise LLMGenerationError(str(data["error"]))

                    token = data.get("response")
                    if token:
                        pieces.append(token)
                        if on_token is not None:
                            await maybe_await(on_token(token))

                    if data.get("done"):
                        return Completion(text="".join(pieces), stats=_stats_from(data))
        except (httpx.ConnectError, httpx.ConnectTimeout) as error:
            raise LLMUnavailableError(
                f"Cannot connect to Ollama. Please ensure Ollama is running at {self.base_url}"
            ) from error
        except httpx.TransportError as error:
            raise LLMGenerationError(f"Ollama stream failed: {error}") from error

        return Completion(text="".join(pieces))

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data: Any = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return f"Ollama request failed: {response.reason_phrase}"

    async def aclose(self) -> None:
        await self._client.aclose()


def _stats_from(data: dict[str, Any]) -> GenerationStats:
    return GenerationStats(
        eval_count=data.get("eval_count"),
        prompt_eval_count=data.get("prompt_eval_count"),
        total_duration=data.get("total_duration"),
        load_duration=data.get("load_duration"),
    )


__all__ = ["OllamaBackend"]
