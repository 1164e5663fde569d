"""
Conversation Memory.

Bounded per-conversation history used to give the model short-term
context. Appends go through one asyncio lock so concurrent runs on the
same conversation never lose entries; snapshots are written atomically.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import aiofiles

from ..domain.entities import MemoryEntry
from ..fileio import write_json_atomic

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 20


class ConversationMemory:
    """In-memory map of conversation id to its most recent entries.

    Usage:
        memory = ConversationMemory(max_entries=20, path=Path("data/memory.json"))
        await memory.load()

        await memory.append_exchange("conv_1", "Hi", "Hello! I'm Morrow.AI.")
        snippet = memory.context_snippet("conv_1")

        await memory.save()
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        path: Optional[Path] = None,
    ):
        """Initialize memory.

        Args:
            max_entries: Most-recent-N bound per conversation
            path: Snapshot file (None disables persistence)
        """
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.path = Path(path) if path else None
        self._conversations: dict[str, list[MemoryEntry]] = {}
        self._lock = asyncio.Lock()
        self._dirty = False

    @property
    def conversation_count(self) -> int:
        return len(self._conversations)

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def _append_locked(self, conversation_id: str, entries: list[MemoryEntry]) -> None:
        history = self._conversations.setdefault(conversation_id, [])
        history.extend(entries)
        if len(history) > self.max_entries:
            del history[: len(history) - self.max_entries]
        self._dirty = True

    async def append(self, conversation_id: str, role: str, content: str) -> None:
        """Append one entry, trimming to the most recent ``max_entries``."""
        async with self._lock:
            self._append_locked(conversation_id, [MemoryEntry(role=role, content=content)])

    async def append_exchange(
        self, conversation_id: str, user_text: str, assistant_text: str
    ) -> None:
        """Append a user prompt and the assistant answer as one unit."""
        async with self._lock:
            self._append_locked(
                conversation_id,
                [
                    MemoryEntry(role="user", content=user_text),
                    MemoryEntry(role="assistant", content=assistant_text),
                ],
            )

    def get_history(self, conversation_id: str) -> list[MemoryEntry]:
        """Copy of a conversation's entries, oldest first."""
        return list(self._conversations.get(conversation_id, ()))

    def context_snippet(
        self,
        conversation_id: Optional[str],
        max_entries: int = 6,
        max_chars: int = 1200,
    ) -> Optional[str]:
        """Short transcript of recent turns for the system prompt.

        Returns:
            ``role: content`` lines, newest kept when over ``max_chars``,
            or None when the conversation has no history
        """
        if not conversation_id:
            return None
        entries = self._conversations.get(conversation_id)
        if not entries:
            return None

        lines = [f"{e.role}: {e.content}" for e in entries[-max_entries:]]
        text = "\n".join(lines)
        if len(text) > max_chars:
            text = text[-max_chars:]
        return text

    def snapshot(self) -> dict[str, list[dict[str, str]]]:
        return {
            conv_id: [entry.to_dict() for entry in entries]
            for conv_id, entries in self._conversations.items()
        }

    async def save(self, path: Optional[Path] = None, force: bool = False) -> bool:
        """Write a snapshot if anything changed since the last save.

        Returns:
            True if a file was written
        """
        target = Path(path) if path else self.path
        if target is None:
            return False

        async with self._lock:
            if not self._dirty and not force:
                return False
            data = self.snapshot()
            self._dirty = False

        try:
            await write_json_atomic(target, data)
        except OSError:
            self._dirty = True
            raise
        logger.debug(f"Saved {len(data)} conversations to {target}")
        return True

    async def load(self, path: Optional[Path] = None) -> int:
        """Load a snapshot. A missing or corrupt file leaves memory empty.

        Returns:
            Number of conversations loaded
        """
        source = Path(path) if path else self.path
        if source is None:
            return 0

        try:
            async with aiofiles.open(source, "r", encoding="utf-8") as f:
                raw: Any = json.loads(await f.read())
        except FileNotFoundError:
            return 0
        except (OSError, ValueError) as e:
            logger.warning(f"Conversation memory {source} unreadable, starting empty: {e}")
            return 0

        if not isinstance(raw, dict):
            logger.warning(f"Conversation memory {source} has unexpected shape, ignoring")
            return 0

        loaded: dict[str, list[MemoryEntry]] = {}
        for conv_id, entries in raw.items():
            if not isinstance(entries, list):
                continue
            parsed = [MemoryEntry.from_dict(e) for e in entries if isinstance(e, dict)]
            loaded[str(conv_id)] = parsed[-self.max_entries :]

        async with self._lock:
            self._conversations = loaded
            self._dirty = False

        logger.info(f"Loaded conversation memory for {len(loaded)} conversations")
        return len(loaded)
