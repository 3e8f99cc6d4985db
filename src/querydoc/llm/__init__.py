"""Streaming language model backends."""

from .base import (
    Completion,
    GenerationStats,
    LLMBackend,
    LLMError,
    LLMGenerationError,
    LLMUnavailableError,
    TokenCallback,
)
from .catalog import MODELS, ModelInfo, find_model, is_cloud_model
from .groq import GroqBackend
from .mock import MockLLMBackend
from .ollama import OllamaBackend
from .provider import Backends, build_backends, get_backends

__all__ = [
    "Backends",
    "Completion",
    "GenerationStats",
    "GroqBackend",
    "LLMBackend",
    "LLMError",
    "LLMGenerationError",
    "LLMUnavailableError",
    "MODELS",
    "MockLLMBackend",
    "ModelInfo",
    "OllamaBackend",
    "TokenCallback",
    "build_backends",
    "find_model",
    "get_backends",
    "is_cloud_model",
]
