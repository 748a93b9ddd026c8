"""Local filesystem store for raw uploads.

Keeps the original bytes of every upload under
``<upload_dir>/<scope>/<document_id>_<filename>`` so a document can be
reprocessed later with different settings.  File I/O runs in a worker
thread.
"""

from __future__ import annotations

import asyncio
import re
from pathlib import Path

import structlog

logger = structlog.get_logger(logger_name=__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_component(value: str, fallback: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", Path(value).name).strip("._")
    return cleaned or fallback


class LocalFileStore:
    """Save, load and delete raw upload bytes on local disk."""

    def __init__(self, root: str | Path = "data/uploads") -> None:
        self._root = Path(root)

    def path_for(self, scope: str, document_id: str, filename: str) -> Path:
        return (
            self._root
            / _safe_component(scope, "default")
            / f"{document_id}_{_safe_component(filename, 'upload')}"
        )

    async def save(self, scope: str, document_id: str, filename: str, data: bytes) -> str:
        """Write *data* and return the storage path as a string."""
        path = self.path_for(scope, document_id, filename)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.to_thread(_write)
        logger.debug("upload_saved", path=str(path), size=len(data))
        return str(path)

    async def load(self, storage_path: str) -> bytes:
        """Read the bytes back.  Raises ``FileNotFoundError`` if gone."""
        return await asyncio.to_thread(Path(storage_path).read_bytes)

    async def delete(self, storage_path: str) -> bool:
        path = Path(storage_path)

        def _unlink() -> bool:
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            return True

        removed = await asyncio.to_thread(_unlink)
        if removed:
            logger.debug("upload_deleted", path=storage_path)
        return removed
