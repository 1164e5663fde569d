"""Knowledge retrieval: keyword store and vector store."""

from .store import (
    SUPPORTED_EXTENSIONS,
    KnowledgeStore,
    list_knowledge_files,
    read_knowledge_file,
    sanitize_filename,
)
from .vectors import (
    VectorSnapshot,
    VectorStore,
    chunk_text,
    cosine_similarity,
)

__all__ = [
    "SUPPORTED_EXTENSIONS",
    "KnowledgeStore",
    "list_knowledge_files",
    "read_knowledge_file",
    "sanitize_filename",
    "VectorSnapshot",
    "VectorStore",
    "chunk_text",
    "cosine_similarity",
]
