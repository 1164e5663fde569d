"""
Keyword knowledge store.

Loads small text-like files from the knowledge folder into memory and
serves case-insensitive substring search over them.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterable, Optional

from ..domain.entities import KnowledgeItem
from ..domain.errors import KnowledgeStoreError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".md", ".txt", ".json")
MAX_CONTENT_CHARS = 10000
DEFAULT_SNIPPET_CHARS = 800
UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")
TITLE_SEPARATORS = re.compile(r"[-_]+")


def title_matches(needle: str, title: str) -> bool:
    """Substring match on a title, reading ``-`` and ``_`` as spaces."""
    title = title.lower()
    return needle in title or needle in TITLE_SEPARATORS.sub(" ", title)


def sanitize_filename(filename: str) -> str:
    """Replace anything outside ``[A-Za-z0-9_.-]`` with an underscore."""
    safe = UNSAFE_FILENAME_CHARS.sub("_", filename or "")
    if not safe.strip("._"):
        raise KnowledgeStoreError(f"Invalid knowledge filename: {filename!r}")
    return safe


def read_knowledge_file(path: Path) -> str:
    """Read one knowledge file as text.

    JSON files are pretty-printed so substring search sees stable
    formatting; unparseable JSON is kept as raw text.
    """
    raw = path.read_text(encoding="utf-8", errors="replace")
    if path.suffix.lower() == ".json":
        try:
            return json.dumps(json.loads(raw), indent=2)
        except json.JSONDecodeError:
            logger.warning(f"Knowledge file {path.name} is not valid JSON, indexing raw text")
    return raw


def list_knowledge_files(directory: Path, exclude: Iterable[str] = ()) -> list[Path]:
    """List supported files in ``directory`` in name order."""
    if not directory.is_dir():
        return []
    skip = set(exclude)
    return sorted(
        p
        for p in directory.iterdir()
        if p.is_file()
        and p.suffix.lower() in SUPPORTED_EXTENSIONS
        and p.name not in skip
    )


class KnowledgeStore:
    """In-memory corpus of knowledge documents.

    The item set is held as one tuple and replaced wholesale on reload,
    so a search running during a reload sees either the old set or the
    new one.

    Usage:
        store = KnowledgeStore(Path("knowledge"))
        store.load()
        hits = store.search("local SEO", limit=3)
    """

    def __init__(
        self,
        directory: Path,
        max_content_chars: int = MAX_CONTENT_CHARS,
        exclude: Iterable[str] = ("embeddings.json",),
    ):
        """Initialize the store.

        Args:
            directory: Knowledge folder
            max_content_chars: Per-file content cap
            exclude: File names to skip (the vector store file lives here too)
        """
        self.directory = Path(directory)
        self.max_content_chars = max_content_chars
        self.exclude = tuple(exclude)
        self._items: tuple[KnowledgeItem, ...] = ()

    @property
    def items(self) -> tuple[KnowledgeItem, ...]:
        return self._items

    @property
    def count(self) -> int:
        return len(self._items)

    def set_items(self, items: Iterable[KnowledgeItem]) -> None:
        """Replace the whole item set."""
        self._items = tuple(items)

    def load(self) -> int:
        """(Re)load every supported file from the folder.

        Unreadable files are skipped with a warning.

        Returns:
            Number of items loaded
        """
        items = []
        for path in list_knowledge_files(self.directory, self.exclude):
            try:
                content = read_knowledge_file(path)
            except OSError as e:
                logger.warning(f"Could not read knowledge file {path.name}: {e}")
                continue
            items.append(KnowledgeItem(title=path.name, content=content[: self.max_content_chars]))

        self._items = tuple(items)
        logger.info(f"Loaded {len(items)} knowledge items from {self.directory}")
        return len(items)

    reload = load

    def search(
        self,
        query: str,
        limit: int = 3,
        max_chars: int = DEFAULT_SNIPPET_CHARS,
    ) -> list[dict[str, Any]]:
        """Keyword search.

        Score is 2 for a content hit plus 1 for a title hit, both
        case-insensitive substring matches (titles also match with
        hyphens and underscores read as spaces). Ties keep load order.

        Args:
            query: Substring to look for
            limit: Maximum number of results
            max_chars: Snippet length cap

        Returns:
            List of ``{"title", "snippet", "score"}`` dicts, best first
        """
        needle = (query or "").strip().lower()
        if not needle or limit <= 0:
            return []

        items = self._items
        scored = []
        for item in items:
            score = 0
            if needle in item.content.lower():
                score += 2
            if title_matches(needle, item.title):
                score += 1
            if score > 0:
                scored.append((score, item))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [
            {"title": item.title, "snippet": item.content[:max_chars], "score": score}
            for score, item in scored[:limit]
        ]

    def add_document(self, filename: str, content: str) -> str:
        """Write a new document into the folder and reload.

        Args:
            filename: Requested file name (sanitized before use)
            content: File content

        Returns:
            The sanitized file name actually written

        Raises:
            KnowledgeStoreError: If the name is unusable or the type unsupported
        """
        safe = sanitize_filename(filename)
        if Path(safe).suffix.lower() not in SUPPORTED_EXTENSIONS:
            raise KnowledgeStoreError(
                f"Unsupported knowledge file type: {safe}",
                details={"supported": list(SUPPORTED_EXTENSIONS)},
            )

        self.directory.mkdir(parents=True, exist_ok=True)
        (self.directory / safe).write_text(content or "", encoding="utf-8")
        logger.info(f"Added knowledge document {safe}")
        self.load()
        return safe

    def get(self, title: str) -> Optional[KnowledgeItem]:
        for item in self._items:
            if item.title == title:
                return item
        return None
