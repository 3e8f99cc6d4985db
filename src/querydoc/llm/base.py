"""Contract shared by the streaming language model backends."""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Optional, Union

TokenCallback = Callable[[str], Union[None, Awaitable[None]]]


class LLMError(RuntimeError):
    """Base exception raised for backend issues."""


class LLMUnavailableError(LLMError):
    """Raised when the backend cannot be reached at all."""


class LLMGenerationError(LLMError):
    """Raised when the backend rejects a request or the stream fails."""


@dataclass(slots=True)
class GenerationStats:
    """Token counts and timings reported by the backend (nanoseconds)."""

    eval_count: Optional[int] = None
    prompt_eval_count: Optional[int] = None
    total_duration: Optional[int] = None
    load_duration: Optional[int] = None

    def as_dict(self) -> dict[str, Optional[int]]:
        return asdict(self)


@dataclass(slots=True)
class Completion:
    text: str
    stats: Optional[GenerationStats] = None


async def maybe_await(result: Any) -> Any:
    """Await result if it is awaitable."""

    if inspect.isawaitable(result):
        return await result
    return result


class LLMBackend(ABC):
    """Common interface exposed by the local and cloud backends."""

    name: str = "backend"
    is_cloud: bool = False

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        model: str,
        on_token: Optional[TokenCallback] = None,
    ) -> Completion:
        """Stream a completion for *prompt*, forwarding each increment to *on_token*."""

    async def is_available(self) -> bool:
        """Return ``True`` when the backend answers a liveness probe. Never raises."""

        return True

    async def aclose(self) -> None:
        return None


__all__ = [
    "Completion",
    "GenerationStats",
    "LLMBackend",
    "LLMError",
    "LLMGenerationError",
    "LLMUnavailableError",
    "TokenCallback",
    "maybe_await",
]
