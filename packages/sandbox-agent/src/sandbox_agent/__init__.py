"""Sandbox agent: confined file and shell operations over line-delimited JSON-RPC."""

from sandbox_agent.types import ExecResult, DirEntry
from sandbox_agent.config import AgentConfig
from sandbox_agent.errors import (
    SandboxError,
    ProtocolError,
    InvalidParamsError,
    MethodNotFoundError,
    ValidationError,
    OutsideWorkspaceError,
    CommandBlockedError,
    CommandOutsideWorkspaceError,
    NotFoundError,
    SpawnError,
    ExecutionError,
    CommandTimeoutError,
    InternalError,
)
from sandbox_agent.guard import WorkspaceGuard
from sandbox_agent.process import ManagedProcess, ProcessExecutor
from sandbox_agent.files import FileOperations
from sandbox_agent.invoker import AgentInvoker, build_claude_args, parse_agent_output
from sandbox_agent.registry import MethodRegistry
from sandbox_agent.agent import AgentState, AgentStatus, SandboxAgent
from sandbox_agent.server import AgentServer, run_stdio
