"""HTTP routers exposed by the service."""

from .chat import router as chat_router
from .documents import router as documents_router
from .models import router as models_router
from .proxy import router as proxy_router

__all__ = ["chat_router", "documents_router", "models_router", "proxy_router"]
