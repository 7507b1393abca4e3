"""Agent configuration."""

from __future__ import annotations

from dataclasses import dataclass

# Absolute locations a command may mention without being inside the workspace
SYSTEM_PATH_ALLOWLIST = ("/usr", "/bin", "/tmp")
SYSTEM_FILE_ALLOWLIST = ("/dev/null",)


@dataclass
class AgentConfig:
    shell: str = "/bin/bash"
    claude_bin: str = "claude"
    command_timeout_ms: int = 60_000
    agent_timeout_ms: int = 300_000
    kill_grace_s: float = 2.0
    max_line_bytes: int = 64 * 1024 * 1024
    workspace_env_var: str = "WORKSPACE"
    host_workspace_env_var: str = "HOST_WORKSPACE"
    log_level: str = "INFO"
