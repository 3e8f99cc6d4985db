"""API router listing the selectable models and the cloud quota."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from querydoc.llm.catalog import MODELS, find_model
from querydoc.services.chat import ChatService, get_chat_service

router = APIRouter(prefix="/models", tags=["models"])


class ModelEntry(BaseModel):
    id: str
    name: str
    info: str
    is_cloud: bool


class CloudUsage(BaseModel):
    used: int
    limit: int
    remaining: int


class ModelsResponse(BaseModel):
    selected: str
    fallback: str
    models: list[ModelEntry]
    cloud_usage: CloudUsage


class SelectModelRequest(BaseModel):
    model: str = Field(..., min_length=1, description="Catalog id of the model to use for new questions.")


def _cloud_usage(chat: ChatService) -> CloudUsage:
    counter = chat.usage_counter
    return CloudUsage(used=counter.get(), limit=counter.limit, remaining=counter.remaining())


def _models_response(chat: ChatService) -> ModelsResponse:
    return ModelsResponse(
        selected=chat.selected_model,
        fallback=chat.fallback_model,
        models=[
            ModelEntry(id=model.id, name=model.name, info=model.info, is_cloud=model.is_cloud)
            for model in MODELS
        ],
        cloud_usage=_cloud_usage(chat),
    )


@router.get("", response_model=ModelsResponse)
def list_models(chat: ChatService = Depends(get_chat_service)) -> ModelsResponse:
    return _models_response(chat)


@router.put("/selected", response_model=ModelsResponse)
def select_model(
    request: SelectModelRequest,
    chat: ChatService = Depends(get_chat_service),
) -> ModelsResponse:
    """Change the model used by subsequent questions."""

    if find_model(request.model) is None:
        raise HTTPException(status_code=404, detail=f"Unknown model: {request.model}")
    chat.selected_model = request.model
    return _models_response(chat)
