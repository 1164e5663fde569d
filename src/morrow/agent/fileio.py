"""Atomic JSON file writes shared by the stores."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import aiofiles


async def write_json_atomic(path: Path, payload: Any, indent: Optional[int] = None) -> None:
    """Write JSON to a sibling temp file, then rename it over ``path``.

    Readers see either the previous file or the complete new one. Each
    call gets its own temp file, so concurrent writers to one path never
    share one; the last rename wins. The temp file is removed if the
    write fails.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    os.close(fd)
    try:
        async with aiofiles.open(tmp_name, "w", encoding="utf-8") as f:
            await f.write(json.dumps(payload, indent=indent, default=str))
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
