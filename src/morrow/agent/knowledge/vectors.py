"""
Vector knowledge store.

Chunks knowledge files into overlapping windows, embeds them through an
``IEmbeddingProvider`` and ranks chunks by cosine similarity.

The persisted file has the shape::

    {"model": "...", "items": [{"file", "chunkIndex", "text", "vector"}], "updatedAt": "..."}
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

import aiofiles

from ..domain.entities import VectorChunk, utc_now_iso
from ..domain.errors import KnowledgeStoreError
from ..domain.ports import IEmbeddingProvider
from ..fileio import write_json_atomic
from .store import list_knowledge_files, read_knowledge_file

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 800
DEFAULT_CHUNK_OVERLAP = 100
SNIPPET_CHARS = 500
EPSILON = 1e-12


def chunk_text(
    text: str,
    size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[str]:
    """Split text into windows of ``size`` chars, each sharing ``overlap`` with the last.

    Raises:
        ValueError: If size is not positive or overlap is not in [0, size)
    """
    if size <= 0:
        raise ValueError("chunk size must be positive")
    if overlap < 0 or overlap >= size:
        raise ValueError("chunk overlap must be >= 0 and smaller than the chunk size")

    chunks = []
    step = size - overlap
    i = 0
    while i < len(text):
        chunks.append(text[i : i + size])
        i += step
    return chunks


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity with an epsilon guarding zero vectors.

    Raises:
        ValueError: If the vectors differ in length
    """
    if len(a) != len(b):
        raise ValueError(f"Vector length mismatch: {len(a)} != {len(b)}")
    dot = na = nb = 0.0
    for x, y in zip(a, b):
        dot += x * y
        na += x * x
        nb += y * y
    return dot / (math.sqrt(na) * math.sqrt(nb) + EPSILON)


@dataclass(frozen=True)
class VectorSnapshot:
    """One immutable generation of the vector store."""

    model: Optional[str] = None
    items: tuple[VectorChunk, ...] = ()
    updated_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "items": [item.to_dict() for item in self.items],
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VectorSnapshot:
        return cls(
            model=data.get("model"),
            items=tuple(VectorChunk.from_dict(item) for item in data.get("items") or []),
            updated_at=data.get("updatedAt"),
        )


EMPTY_SNAPSHOT = VectorSnapshot()


@dataclass
class BuildStats:
    files: int = 0
    chunks: int = 0
    skipped: list[str] = field(default_factory=list)


class VectorStore:
    """Embedding index over the knowledge folder.

    Queries read the current snapshot reference once, and a rebuild
    publishes a new snapshot in a single assignment after the file has
    been atomically replaced. Rebuilds are serialized with a lock.

    Usage:
        store = VectorStore(Path("knowledge/embeddings.json"), Path("knowledge"), embedder)
        await store.load()
        await store.build()
        hits = await store.query("citation cleanup", k=5)
    """

    def __init__(
        self,
        path: Path,
        knowledge_dir: Path,
        embedder: Optional[IEmbeddingProvider] = None,
    ):
        self.path = Path(path)
        self.knowledge_dir = Path(knowledge_dir)
        self.embedder = embedder
        self._snapshot: VectorSnapshot = EMPTY_SNAPSHOT
        self._build_lock = asyncio.Lock()

    @property
    def has_embedder(self) -> bool:
        return self.embedder is not None

    @property
    def snapshot(self) -> VectorSnapshot:
        return self._snapshot

    @property
    def count(self) -> int:
        return len(self._snapshot.items)

    def _require_embedder(self) -> IEmbeddingProvider:
        if self.embedder is None:
            raise KnowledgeStoreError(
                "Vector search unavailable: no embedding backend configured"
            )
        return self.embedder

    async def load(self) -> VectorSnapshot:
        """Load the persisted store. A missing or corrupt file loads as empty."""
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                raw = await f.read()
            snapshot = VectorSnapshot.from_dict(json.loads(raw))
        except FileNotFoundError:
            snapshot = EMPTY_SNAPSHOT
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Vector store {self.path} unreadable, starting empty: {e}")
            snapshot = EMPTY_SNAPSHOT

        self._snapshot = snapshot
        logger.info(f"Vector store loaded {len(snapshot.items)} chunks")
        return snapshot

    async def build(
        self,
        size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_CHUNK_OVERLAP,
        exclude: Iterable[str] = (),
    ) -> VectorSnapshot:
        """Rebuild the whole index from the knowledge folder.

        Raises:
            KnowledgeStoreError: If no embedding backend is configured
            ProviderError: If the embedding backend fails
        """
        embedder = self._require_embedder()

        async with self._build_lock:
            skip = {self.path.name, *exclude}
            stats = BuildStats()
            items: list[VectorChunk] = []

            for path in list_knowledge_files(self.knowledge_dir, skip):
                try:
                    text = read_knowledge_file(path)
                except OSError as e:
                    logger.warning(f"Skipping {path.name}: {e}")
                    stats.skipped.append(path.name)
                    continue

                chunks = chunk_text(text, size=size, overlap=overlap)
                if not chunks:
                    continue
                vectors = await embedder.embed_batch(chunks)
                if len(vectors) != len(chunks):
                    raise KnowledgeStoreError(
                        f"Embedding backend returned {len(vectors)} vectors for {len(chunks)} chunks"
                    )
                for index, (chunk, vector) in enumerate(zip(chunks, vectors)):
                    items.append(
                        VectorChunk(file=path.name, chunk_index=index, text=chunk, vector=tuple(vector))
                    )
                stats.files += 1

            stats.chunks = len(items)
            snapshot = VectorSnapshot(
                model=embedder.embedding_model,
                items=tuple(items),
                updated_at=utc_now_iso(),
            )
            await write_json_atomic(self.path, snapshot.to_dict())
            self._snapshot = snapshot

        logger.info(
            f"Vector store rebuilt: {stats.chunks} chunks from {stats.files} files "
            f"(model={snapshot.model})"
        )
        return snapshot

    async def query(self, text: str, k: int = 5) -> list[dict[str, Any]]:
        """Rank stored chunks against ``text``.

        Returns:
            Top-k ``{"file", "chunkIndex", "score", "snippet"}`` dicts
        """
        snapshot = self._snapshot
        if not snapshot.items or not text or k <= 0:
            return []

        embedder = self._require_embedder()
        if snapshot.model and snapshot.model != embedder.embedding_model:
            logger.warning(
                f"Vector store built with {snapshot.model}, querying with {embedder.embedding_model}"
            )

        query_vector = (await embedder.embed_batch([text]))[0]
        scored = []
        for item in snapshot.items:
            if len(item.vector) != len(query_vector):
                continue
            scored.append((cosine_similarity(query_vector, item.vector), item))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [
            {
                "file": item.file,
                "chunkIndex": item.chunk_index,
                "score": round(score, 4),
                "snippet": item.text[:SNIPPET_CHARS],
            }
            for score, item in scored[:k]
        ]
