"""Mock backend that streams scripted responses for tests and offline development."""
from __future__ import annotations

import re
from typing import List, Optional, Sequence, Tuple, Union

from .base import Completion, GenerationStats, LLMBackend, TokenCallback, maybe_await

_TOKEN_RE = re.compile(r"\S+\s*")

ScriptedResponse = Union[str, BaseException]


class MockLLMBackend(LLMBackend):
    """Return scripted responses in order, then a deterministic echo.

    A scripted exception is raised instead of producing text, which lets tests
    fail a specific call (for example only the pinpoint pass).
    """

    def __init__(
        self,
        responses: Optional[Sequence[ScriptedResponse]] = None,
        *,
        name: str = "mock",
        is_cloud: bool = False,
        available: bool = True,
        stats: Optional[GenerationStats] = None,
    ) -> None:
        self.name = name
        self.is_cloud = is_cloud
        self.available = available
        self.stats = stats
        self._responses: List[ScriptedResponse] = list(responses or [])
        self.calls: List[Tuple[str, str]] = []
        self.probes = 0

    async def is_available(self) -> bool:
        self.probes += 1
        return self.available

    async def generate(
        self,
        prompt: str,
        model: str,
        on_token: Optional[TokenCallback] = None,
    ) -> Completion:
        self.calls.append((prompt, model))
        response = self._responses.pop(0) if self._responses else f"MOCK_ANSWER: {prompt[:100]}"
        if isinstance(response, BaseException):
            raise response

        if on_token is not None:
            for token in _TOKEN_RE.findall(response):
                await maybe_await(on_token(token))
        return Completion(text=response, stats=self.stats)


__all__ = ["MockLLMBackend"]
