"""The sandbox agent: per-process state and the protocol method handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from sandbox_agent.config import AgentConfig
from sandbox_agent.errors import InvalidParamsError, ShuttingDownError
from sandbox_agent.files import FileOperations
from sandbox_agent.guard import WorkspaceGuard
from sandbox_agent.invoker import AgentInvoker
from sandbox_agent.params import (
    CopyFileParams,
    ExecuteCommandParams,
    FileExistsParams,
    NoParams,
    PathParams,
    RunClaudeCodeParams,
    SetWorkspaceParams,
    WriteFileParams,
)
from sandbox_agent.process import ProcessExecutor, merge_env
from sandbox_agent.registry import MethodRegistry

logger = logging.getLogger(__name__)


class AgentStatus(str, Enum):
    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    SHUTTING_DOWN = "shutting_down"


@dataclass
class AgentState:
    """Mutable state owned by one agent process.

    ``setWorkspace`` is not meant to race in-flight requests. Each request
    takes a guard snapshot at entry, so a concurrent reconfiguration only
    affects requests that arrive after it.
    """

    workspace: Path | None = None
    host_workspace: str | None = None
    status: AgentStatus = AgentStatus.UNCONFIGURED
    _guard: WorkspaceGuard = field(default_factory=WorkspaceGuard, repr=False)

    @property
    def shutting_down(self) -> bool:
        return self.status == AgentStatus.SHUTTING_DOWN

    def set_workspace(self, path: str, host_path: str | None = None) -> Path:
        guard = WorkspaceGuard.for_workspace(path)
        root = guard.require_root()
        if not root.is_dir():
            raise InvalidParamsError(f"Workspace is not a directory: {path}")
        self._guard = guard
        self.workspace = root
        self.host_workspace = host_path or path
        if not self.shutting_down:
            self.status = AgentStatus.CONFIGURED
        return root

    def guard(self) -> WorkspaceGuard:
        return self._guard


@dataclass
class RequestContext:
    """What a handler sees: the state plus the workspace snapshot taken at entry."""

    state: AgentState
    guard: WorkspaceGuard
    host_workspace: str | None = None

    @property
    def files(self) -> FileOperations:
        return FileOperations(self.guard)


class SandboxAgent:
    """Executes protocol methods against a single workspace."""

    def __init__(self, config: AgentConfig | None = None, state: AgentState | None = None) -> None:
        self.config = config or AgentConfig()
        self.state = state or AgentState()
        self.executor = ProcessExecutor(self.config)
        self.invoker = AgentInvoker(self.executor, self.config)
        self.registry = MethodRegistry()
        self._register_methods()

    def _register_methods(self) -> None:
        r = self.registry
        r.register("ping", self.ping)
        r.register("setWorkspace", self.set_workspace, SetWorkspaceParams)
        r.register("executeCommand", self.execute_command, ExecuteCommandParams)
        r.register("readFile", self.read_file, PathParams)
        r.register("writeFile", self.write_file, WriteFileParams)
        r.register("listDirectory", self.list_directory, PathParams)
        r.register("fileExists", self.file_exists, FileExistsParams)
        r.register("deleteFile", self.delete_file, PathParams)
        r.register("createDirectory", self.create_directory, PathParams)
        r.register("copyFile", self.copy_file, CopyFileParams)
        r.register("runClaudeCode", self.run_claude_code, RunClaudeCodeParams)
        r.register("shutdown", self.shutdown)

    def context(self) -> RequestContext:
        return RequestContext(
            state=self.state,
            guard=self.state.guard(),
            host_workspace=self.state.host_workspace,
        )

    async def handle(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Run one method. Raises SandboxError subclasses on failure."""
        if self.state.shutting_down:
            raise ShuttingDownError()
        return await self.registry.dispatch(method, params or {}, self.context())

    # Handlers

    def ping(self, ctx: RequestContext, params: NoParams) -> dict[str, Any]:
        return {"pong": True}

    def set_workspace(self, ctx: RequestContext, params: SetWorkspaceParams) -> dict[str, Any]:
        root = ctx.state.set_workspace(params.path, params.alt_path)
        logger.info("Workspace set to: %s", root)
        return {"success": True}

    async def execute_command(self, ctx: RequestContext, params: ExecuteCommandParams) -> dict[str, Any]:
        cwd = params.cwd or str(ctx.guard.require_root())
        resolved_cwd = ctx.guard.validate_command(params.command, cwd)
        logger.info("Executing: %s in %s", params.command, resolved_cwd)
        env = merge_env(
            params.env,
            self.executor.workspace_env(str(ctx.guard.root), ctx.host_workspace),
        )
        result = await self.executor.run_shell(
            params.command, cwd=resolved_cwd, env=env, timeout_ms=params.timeout
        )
        return result.to_wire()

    async def read_file(self, ctx: RequestContext, params: PathParams) -> dict[str, Any]:
        return {"content": await ctx.files.read_file(params.path)}

    async def write_file(self, ctx: RequestContext, params: WriteFileParams) -> dict[str, Any]:
        await ctx.files.write_file(params.path, params.content)
        return {"success": True}

    async def list_directory(self, ctx: RequestContext, params: PathParams) -> dict[str, Any]:
        entries = await ctx.files.list_directory(params.path)
        return {"entries": [e.to_wire() for e in entries]}

    async def file_exists(self, ctx: RequestContext, params: FileExistsParams) -> dict[str, Any]:
        return {"exists": await ctx.files.file_exists(params.path)}

    async def delete_file(self, ctx: RequestContext, params: PathParams) -> dict[str, Any]:
        await ctx.files.delete_file(params.path)
        return {"success": True}

    async def create_directory(self, ctx: RequestContext, params: PathParams) -> dict[str, Any]:
        await ctx.files.create_directory(params.path)
        return {"success": True}

    async def copy_file(self, ctx: RequestContext, params: CopyFileParams) -> dict[str, Any]:
        await ctx.files.copy_file(params.src, params.dest)
        return {"success": True}

    async def run_claude_code(self, ctx: RequestContext, params: RunClaudeCodeParams) -> dict[str, Any]:
        cwd = ctx.guard.resolve_cwd(params.cwd)
        messages = await self.invoker.run(
            params.prompt,
            cwd=cwd,
            model=params.model,
            max_turns=params.max_turns,
            system_prompt=params.system_prompt,
            env=params.env,
        )
        return {"messages": messages}

    def shutdown(self, ctx: RequestContext, params: NoParams) -> dict[str, Any]:
        ctx.state.status = AgentStatus.SHUTTING_DOWN
        logger.info("Shutdown requested")
        return {"success": True}
