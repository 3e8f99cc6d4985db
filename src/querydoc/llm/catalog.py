"""Models selectable by the user, split between the local server and the cloud."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True, slots=True)
class ModelInfo:
    id: str
    name: str
    info: str
    is_cloud: bool = False


MODELS: Tuple[ModelInfo, ...] = (
    ModelInfo("gemma2:2b", "Gemma 2B", "Very fast, best for quick summaries"),
    ModelInfo("qwen2.5:3b", "Qwen 2.5 3B", "Fast, balanced for daily use"),
    ModelInfo("qwen2.5:7b-instruct-q4_0", "Qwen 2.5 7B", "Steady, highest accuracy"),
    ModelInfo("llama-3.1-70b-versatile", "Cloud: Llama 70B", "Best quality for complex questions", True),
    ModelInfo("llama-3.1-8b-instant", "Cloud: Llama 8B", "Quick answers, ultra-fast", True),
    ModelInfo("mixtral-8x7b-32768", "Cloud: Mixtral 8x7B", "Balanced, great for long context", True),
    ModelInfo("gemma2-9b-it", "Cloud: Gemma 9B", "Fast, solid logic", True),
)

SMALLEST_LOCAL_MODEL = "gemma2:2b"


def find_model(model_id: str) -> Optional[ModelInfo]:
    return next((model for model in MODELS if model.id == model_id), None)


def is_cloud_model(model_id: str) -> bool:
    """Unknown ids are treated as local models served by the inference server."""

    model = find_model(model_id)
    return model.is_cloud if model is not None else False


__all__ = ["MODELS", "ModelInfo", "SMALLEST_LOCAL_MODEL", "find_model", "is_cloud_model"]
