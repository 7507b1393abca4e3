"""Core types for the sandbox agent."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ExecResult:
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0

    def to_wire(self) -> dict[str, Any]:
        return {"code": self.exit_code, "stdout": self.stdout, "stderr": self.stderr}


@dataclass
class DirEntry:
    name: str = ""
    is_dir: bool = False
    size: int | None = None

    def to_wire(self) -> dict[str, Any]:
        entry: dict[str, Any] = {"name": self.name, "isDirectory": self.is_dir}
        if self.size is not None:
            entry["size"] = self.size
        return entry


def text_message(line: str) -> dict[str, Any]:
    """Wrap a raw CLI output line that is not a JSON object."""
    return {"type": "text", "content": line}
