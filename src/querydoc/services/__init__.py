"""Stateful services behind the HTTP API."""

from .chat import ChatService, Message, TurnResult, TurnState, get_chat_service
from .documents import DocumentCollection, get_document_collection

__all__ = [
    "ChatService",
    "DocumentCollection",
    "Message",
    "TurnResult",
    "TurnState",
    "get_chat_service",
    "get_document_collection",
]
