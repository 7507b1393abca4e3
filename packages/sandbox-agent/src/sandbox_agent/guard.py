"""Workspace guard: path and command confinement.

Paths are canonicalized with symlinks resolved and compared by segment, so
``/workspace-other`` is never mistaken for a child of ``/workspace``.

The command checks are a heuristic layer on top of the VM boundary, not a
sandbox. They only see the literal command text: variables, globbing,
command substitution, encoded payloads and scripts written to disk and then
executed all get past them. Treat a rejection as a useful signal and an
acceptance as no guarantee.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

from sandbox_agent.config import SYSTEM_FILE_ALLOWLIST, SYSTEM_PATH_ALLOWLIST
from sandbox_agent.errors import (
    CommandBlockedError,
    CommandOutsideWorkspaceError,
    OutsideWorkspaceError,
    PathTraversalError,
    WorkspaceNotConfiguredError,
)

_TRAVERSAL_TOKENS = ("../", "..\\")

# (rule name, pattern); all matched case-insensitively
BLOCKED_COMMANDS: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (name, re.compile(pattern, re.IGNORECASE))
    for name, pattern in (
        (
            "recursive delete of absolute or home path",
            r"\brm\b(?=[^;&|<>\n]*\s(?:-[a-z]*r[a-z]*|--recursive)\b)"
            r"[^;&|<>\n]*\s['\"]?(?:/|~|\$\{?HOME\b)",
        ),
        ("raw disk write", r"\bdd\s+if="),
        ("filesystem format", r"\bmkfs"),
        ("redirect into device file", r">\s*/dev/(?!null\b)"),
        ("remote script piped to shell", r"\b(?:curl|wget)\b.*\|\s*(?:ba|z|da)?sh\b"),
        ("privileged delete", r"\bsudo\s+rm\b"),
        (
            "world-writable root",
            r"\bchmod\s+(?:-\S+\s+)*(?:0?777|a\+w|o\+w)\s+/(?=[\s;&|)]|$)",
        ),
    )
)

# A "/" that starts a shell word (or follows an escape or a closing
# substitution), followed by path characters
_ABS_PATH_TOKEN = re.compile(r"(?<![^\s'\"=<>|;&(),`\\])/[\w/.\-+@%]*")


def canonicalize(path: str | os.PathLike[str], base: Path | None = None) -> Path:
    """Resolve ``path`` (relative to ``base``) to an absolute, symlink-free path."""
    raw = os.fspath(path)
    if "\x00" in raw:
        raise ValueError("embedded null byte")
    p = Path(raw)
    if not p.is_absolute() and base is not None:
        p = base / p
    return Path(os.path.realpath(p))


def is_within(path: Path, root: Path) -> bool:
    return path == root or path.is_relative_to(root)


def _is_allowlisted_system_path(token: str) -> bool:
    normalized = os.path.normpath(token)
    if normalized in SYSTEM_FILE_ALLOWLIST:
        return True
    return any(
        normalized == prefix or normalized.startswith(prefix + "/")
        for prefix in SYSTEM_PATH_ALLOWLIST
    )


@dataclass(frozen=True)
class WorkspaceGuard:
    """Immutable view of the workspace a request validates against."""

    root: Path | None = None

    @classmethod
    def for_workspace(cls, path: str | os.PathLike[str] | None) -> WorkspaceGuard:
        if not path:
            return cls(None)
        return cls(canonicalize(path))

    @property
    def configured(self) -> bool:
        return self.root is not None

    def require_root(self) -> Path:
        if self.root is None:
            raise WorkspaceNotConfiguredError()
        return self.root

    def validate_path(self, target: str | os.PathLike[str]) -> Path:
        """Return the canonical form of ``target`` if it lies in the workspace."""
        root = self.require_root()
        if not os.fspath(target):
            raise OutsideWorkspaceError("''")
        try:
            resolved = canonicalize(target, base=root)
        except ValueError:
            raise OutsideWorkspaceError(repr(os.fspath(target)))
        if not is_within(resolved, root):
            raise OutsideWorkspaceError(str(resolved))
        return resolved

    def validate_entry(self, target: str | os.PathLike[str]) -> Path:
        """Like ``validate_path``, but a final symlink names the link itself.

        Only the parent directory is resolved and checked, for operations on
        the directory entry rather than on what it points to.
        """
        root = self.require_root()
        raw = os.fspath(target)
        if not raw or "\x00" in raw:
            raise OutsideWorkspaceError(repr(raw))
        p = Path(raw)
        if not p.is_absolute():
            p = root / p
        lexical = Path(os.path.normpath(p))
        parent = canonicalize(lexical.parent)
        if lexical.name in ("", ".", "..") or not is_within(parent, root):
            raise OutsideWorkspaceError(str(lexical))
        return parent / lexical.name

    def resolve_cwd(self, cwd: str | None) -> Path:
        """Validated working directory, defaulting to the workspace root."""
        return self.validate_path(cwd) if cwd else self.require_root()

    def validate_command(self, command: str, cwd: str | os.PathLike[str]) -> Path:
        """Check a shell command before it runs. Returns the canonical cwd."""
        resolved_cwd = self.validate_path(cwd)

        if any(token in command for token in _TRAVERSAL_TOKENS):
            raise PathTraversalError()

        for rule, pattern in BLOCKED_COMMANDS:
            if pattern.search(command):
                raise CommandBlockedError(rule)

        root = self.require_root()
        for token in absolute_path_tokens(command):
            if _is_allowlisted_system_path(token):
                continue
            if not is_within(canonicalize(token), root):
                raise CommandOutsideWorkspaceError(token)

        return resolved_cwd


def absolute_path_tokens(command: str) -> list[str]:
    """Absolute-path-like words in ``command``, in order of appearance."""
    return _ABS_PATH_TOKEN.findall(command)
