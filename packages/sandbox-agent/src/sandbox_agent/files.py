"""File operations confined to the workspace."""

from __future__ import annotations

import logging
import os
import shutil
from typing import Any

from sandbox_agent.errors import NotFoundError
from sandbox_agent.guard import WorkspaceGuard
from sandbox_agent.types import DirEntry

logger = logging.getLogger(__name__)


class FileOperations:
    """Filesystem access through a workspace guard.

    Text is read and written as UTF-8 without newline translation, so what
    ``write_file`` stores is exactly what ``read_file`` returns.
    """

    def __init__(self, guard: WorkspaceGuard) -> None:
        self.guard = guard

    async def read_file(self, path: str) -> str:
        full = self.guard.validate_path(path)
        if not full.exists():
            raise NotFoundError(f"File not found: {path}", path=path)
        with open(full, encoding="utf-8", errors="replace", newline="") as f:
            return f.read()

    async def write_file(self, path: str, content: str) -> None:
        full = self.guard.validate_path(path)
        full.parent.mkdir(parents=True, exist_ok=True)
        with open(full, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        logger.debug("Wrote %d chars to %s", len(content), full)

    async def list_directory(self, path: str) -> list[DirEntry]:
        full = self.guard.validate_path(path)
        if not full.exists():
            raise NotFoundError(f"Directory not found: {path}", path=path)
        entries: list[DirEntry] = []
        with os.scandir(full) as it:
            for item in sorted(it, key=lambda e: e.name):
                size = None
                if item.is_file(follow_symlinks=False):
                    size = item.stat(follow_symlinks=False).st_size
                entries.append(
                    DirEntry(name=item.name, is_dir=item.is_dir(follow_symlinks=False), size=size)
                )
        return entries

    async def file_exists(self, path: Any) -> bool:
        if not isinstance(path, str):
            return False
        try:
            return self.guard.validate_path(path).exists()
        except Exception:
            return False

    async def delete_file(self, path: str) -> None:
        entry = self.guard.validate_entry(path)
        if os.path.lexists(entry):
            entry.unlink()
            logger.debug("Deleted %s", entry)

    async def create_directory(self, path: str) -> None:
        full = self.guard.validate_path(path)
        full.mkdir(parents=True, exist_ok=True)

    async def copy_file(self, src: str, dest: str) -> None:
        full_src = self.guard.validate_path(src)
        full_dest = self.guard.validate_path(dest)
        if not full_src.exists():
            raise NotFoundError(f"File not found: {src}", path=src)
        full_dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(full_src, full_dest)
        logger.debug("Copied %s -> %s", full_src, full_dest)

