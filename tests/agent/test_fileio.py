"""
Tests for atomic JSON writes.
"""

import asyncio
import json
from unittest.mock import patch

import pytest

from src.morrow.agent.fileio import write_json_atomic


class TestWriteJsonAtomic:
    """Tests for write_json_atomic."""

    @pytest.mark.asyncio
    async def test_writes_and_creates_parent(self, tmp_path):
        """Missing parent folders are created."""
        path = tmp_path / "data" / "memory.json"
        await write_json_atomic(path, {"conv_1": []}, indent=2)

        assert json.loads(path.read_text(encoding="utf-8")) == {"conv_1": []}
        assert [p.name for p in path.parent.iterdir()] == ["memory.json"]

    @pytest.mark.asyncio
    async def test_concurrent_writers_same_path(self, tmp_path):
        """Concurrent saves to one path all succeed and leave one complete file."""
        path = tmp_path / "audits" / "aud_1.json"
        payloads = [{"writer": i, "blob": str(i) * 200_000} for i in range(8)]

        results = await asyncio.gather(
            *(write_json_atomic(path, payload) for payload in payloads),
            return_exceptions=True,
        )

        assert results == [None] * 8
        assert json.loads(path.read_text(encoding="utf-8")) in payloads
        assert [p.name for p in path.parent.iterdir()] == ["aud_1.json"]

    @pytest.mark.asyncio
    async def test_failed_write_keeps_old_file_and_cleans_up(self, tmp_path):
        """A failed write leaves the previous file intact and no temp file behind."""
        path = tmp_path / "embeddings.json"
        await write_json_atomic(path, {"items": [1]})

        with patch("src.morrow.agent.fileio.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError, match="disk full"):
                await write_json_atomic(path, {"items": [2]})

        assert json.loads(path.read_text(encoding="utf-8")) == {"items": [1]}
        assert [p.name for p in tmp_path.iterdir()] == ["embeddings.json"]
