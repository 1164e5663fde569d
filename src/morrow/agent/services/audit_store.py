"""
Audit persistence.

``JsonFileAuditStore`` keeps one JSON document per audit in a directory;
``InMemoryAuditStore`` keeps them in a dict.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Any, Optional

import aiofiles

from ..domain.entities import utc_now_iso
from ..domain.errors import MorrowError
from ..domain.ports import IAuditStore
from ..fileio import write_json_atomic

logger = logging.getLogger(__name__)

AUDIT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def _storage_id(audit: dict[str, Any]) -> str:
    audit_id = str(audit.get("auditId") or "")
    if not AUDIT_ID_PATTERN.match(audit_id):
        raise MorrowError(f"Invalid audit id: {audit_id!r}")
    return audit_id


def _stored_document(audit: dict[str, Any], owner_id: Optional[str]) -> dict[str, Any]:
    now = utc_now_iso()
    return {
        **audit,
        "ownerId": owner_id,
        "clientId": audit.get("profileId"),
        "createdAt": now,
        "updatedAt": now,
    }


class InMemoryAuditStore(IAuditStore):
    """Dict-backed store."""

    def __init__(self):
        self._audits: dict[str, dict[str, Any]] = {}

    async def save_audit(self, audit: dict[str, Any], owner_id: Optional[str] = None) -> str:
        audit_id = _storage_id(audit)
        self._audits[audit_id] = _stored_document(audit, owner_id)
        return audit_id

    async def get_audit(self, audit_id: str) -> Optional[dict[str, Any]]:
        doc = self._audits.get(audit_id)
        return dict(doc) if doc is not None else None

    async def list_audits_by_business(
        self, business_name: str, limit: int = 50
    ) -> list[dict[str, Any]]:
        matches = [a for a in self._audits.values() if a.get("businessName") == business_name]
        matches.sort(key=lambda a: a.get("timestamp") or "", reverse=True)
        return [dict(a) for a in matches[:limit]]


class JsonFileAuditStore(IAuditStore):
    """One ``<auditId>.json`` file per audit.

    Usage:
        store = JsonFileAuditStore(Path("data/audits"))
        audit_id = await store.save_audit(audit)
        stored = await store.get_audit(audit_id)
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, audit_id: str) -> Optional[Path]:
        if not AUDIT_ID_PATTERN.match(audit_id or ""):
            return None
        return self.directory / f"{audit_id}.json"

    async def save_audit(self, audit: dict[str, Any], owner_id: Optional[str] = None) -> str:
        audit_id = _storage_id(audit)
        await write_json_atomic(
            self.directory / f"{audit_id}.json", _stored_document(audit, owner_id), indent=2
        )
        logger.debug(f"Saved audit {audit_id} to {self.directory}")
        return audit_id

    async def _read(self, path: Path) -> Optional[dict[str, Any]]:
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                return json.loads(await f.read())
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable audit file {path.name}: {e}")
            return None

    async def get_audit(self, audit_id: str) -> Optional[dict[str, Any]]:
        path = self._path(audit_id)
        if path is None:
            return None
        return await self._read(path)

    async def list_audits_by_business(
        self, business_name: str, limit: int = 50
    ) -> list[dict[str, Any]]:
        """Audits for a business, newest first."""
        if not self.directory.is_dir():
            return []
        docs = await asyncio.gather(
            *(self._read(path) for path in sorted(self.directory.glob("*.json")))
        )
        matches = [d for d in docs if d and d.get("businessName") == business_name]
        matches.sort(key=lambda a: a.get("timestamp") or "", reverse=True)
        return matches[:limit]
