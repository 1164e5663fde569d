"""Conversation memory and its persistence task."""

from .conversation import ConversationMemory
from .persistence_worker import MemoryPersistenceWorker, PersistenceMetrics

__all__ = [
    "ConversationMemory",
    "MemoryPersistenceWorker",
    "PersistenceMetrics",
]
