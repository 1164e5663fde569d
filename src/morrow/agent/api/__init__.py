"""Morrow API layer.

Provides the FastAPI router and request/response schemas.
"""

from .router import router, create_morrow_dependencies
from .schemas import (
    AuditRequest,
    BrainRequest,
    BrainResponse,
    IntentRequest,
    IntentResponse,
    KnowledgeAddRequest,
    KnowledgeSearchRequest,
    NotifyRequest,
)

__all__ = [
    "router",
    "create_morrow_dependencies",
    "AuditRequest",
    "BrainRequest",
    "BrainResponse",
    "IntentRequest",
    "IntentResponse",
    "KnowledgeAddRequest",
    "KnowledgeSearchRequest",
    "NotifyRequest",
]
