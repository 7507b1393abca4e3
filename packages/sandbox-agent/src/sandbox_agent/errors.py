"""Error hierarchy for the sandbox agent.

Every error maps onto a single JSON-RPC error object. The code is the
generic server error code; the concrete class name travels in ``data.type``
so the host can tell a blocked command from a missing file.
"""

from __future__ import annotations

from typing import Any

GENERIC_ERROR_CODE = -32000


class SandboxError(Exception):
    """Base error for all agent errors."""

    code: int = GENERIC_ERROR_CODE

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause

    @property
    def message(self) -> str:
        return str(self)

    def extra(self) -> dict[str, Any]:
        return {}

    def to_error(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "data": {"type": type(self).__name__, **self.extra()},
        }


# Protocol errors

class ProtocolError(SandboxError):
    """Malformed or incomplete request."""


class InvalidParamsError(ProtocolError):
    pass


class MethodNotFoundError(ProtocolError):
    def __init__(self, method: str):
        super().__init__(f"Unknown method: {method}")
        self.method = method


class ShuttingDownError(ProtocolError):
    def __init__(self) -> None:
        super().__init__("Agent is shutting down")


# Confinement errors

class ValidationError(SandboxError):
    """Path or command rejected by the workspace guard."""


class WorkspaceNotConfiguredError(ValidationError):
    def __init__(self) -> None:
        super().__init__("Workspace not configured")


class OutsideWorkspaceError(ValidationError):
    def __init__(self, path: str):
        super().__init__(f"Path is outside workspace: {path}")
        self.path = path

    def extra(self) -> dict[str, Any]:
        return {"path": self.path}


class PathTraversalError(ValidationError):
    def __init__(self) -> None:
        super().__init__("Path traversal detected in command")


class CommandBlockedError(ValidationError):
    def __init__(self, rule: str):
        super().__init__(f"Potentially dangerous command blocked: {rule}")
        self.rule = rule

    def extra(self) -> dict[str, Any]:
        return {"rule": self.rule}


class CommandOutsideWorkspaceError(ValidationError):
    def __init__(self, path: str):
        super().__init__(f"Command references path outside workspace: {path}")
        self.path = path

    def extra(self) -> dict[str, Any]:
        return {"path": self.path}


# Runtime errors

class NotFoundError(SandboxError):
    def __init__(self, message: str, *, path: str):
        super().__init__(message)
        self.path = path

    def extra(self) -> dict[str, Any]:
        return {"path": self.path}


class SpawnError(SandboxError):
    """The subprocess could not be started at all."""

    def __init__(self, program: str, *, cause: Exception | None = None):
        reason = cause.strerror if isinstance(cause, OSError) and cause.strerror else str(cause)
        super().__init__(f"Failed to spawn {program}: {reason}", cause=cause)
        self.program = program


class ExecutionError(SandboxError):
    """The subprocess ran and exited nonzero."""

    def __init__(self, message: str, *, exit_code: int, stderr: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr

    def extra(self) -> dict[str, Any]:
        return {"exitCode": self.exit_code, "stderr": self.stderr}


class CommandTimeoutError(SandboxError):
    def __init__(self, program: str, timeout_ms: int):
        super().__init__(f"{program} timed out after {timeout_ms}ms")
        self.timeout_ms = timeout_ms

    def extra(self) -> dict[str, Any]:
        return {"timeoutMs": self.timeout_ms}


class InternalError(SandboxError):
    """Anything unanticipated, wrapped at the transport boundary."""


def as_sandbox_error(exc: BaseException) -> SandboxError:
    """Return ``exc`` itself if it is already a SandboxError, else wrap it."""
    if isinstance(exc, SandboxError):
        return exc
    message = str(exc) or type(exc).__name__
    return InternalError(message, cause=exc if isinstance(exc, Exception) else None)
