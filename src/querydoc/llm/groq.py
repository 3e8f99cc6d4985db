"""Client for the cloud inference API reached through a same-origin proxy."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from .base import (
    Completion,
    LLMBackend,
    LLMGenerationError,
    LLMUnavailableError,
    TokenCallback,
    maybe_await,
)

LOGGER = logging.getLogger(__name__)

_DATA_PREFIX = "data: "
_DONE_MARKER = "[DONE]"


class GroqBackend(LLMBackend):
    """Posts ``{prompt, model}`` to the proxy and reads the relayed event stream.

    The proxy holds the API credential, so this client never sees it.
    """

    name = "groq"
    is_cloud = True

    def __init__(
        self,
        endpoint: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
    ) -> None:
        self.endpoint = endpoint
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))

    async def generate(
        self,
        prompt: str,
        model: str,
        on_token: Optional[TokenCallback] = None,
    ) -> Completion:
        pieces: list[str] = []
        try:
            async with self._client.stream(
                "POST", self.endpoint, json={"prompt": prompt, "model": model}
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise LLMGenerationError(self._error_message(response))

                async for line in response.aiter_lines():
                    line = line.strip()
                    if not line or _DONE_MARKER in line:
                        continue
                    if not line.startswith(_DATA_PREFIX):
                        continue
                    content = _delta_content(line[len(_DATA_PREFIX):])
                    if content:
                        pieces.append(content)
                        if on_token is not None:
                            await maybe_await(on_token(content))
        except (httpx.ConnectError, httpx.ConnectTimeout) as error:
            raise LLMUnavailableError(f"Cannot reach the cloud proxy at {self.endpoint}") from error
        except httpx.TransportError as error:
            raise LLMGenerationError(f"Groq stream failed: {error}") from error

        return Completion(text="".join(pieces))

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data: Any = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str) and error:
                return error
        return "Groq request failed"

    async def aclose(self) -> None:
        await self._client.aclose()


def _delta_content(raw: str) -> str:
    try:
        data = json.loads(raw)
        return data["choices"][0]["delta"].get("content") or ""
    except (json.JSONDecodeError, KeyError, IndexError, TypeError, AttributeError):
        # Partial or keep-alive events carry no content.
        LOGGER.debug("Ignoring unparsable event: %r", raw[:200])
        return ""


__all__ = ["GroqBackend"]
