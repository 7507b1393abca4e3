"""CLI entry point for the sandbox agent."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from sandbox_agent.config import AgentConfig
from sandbox_agent.errors import ValidationError
from sandbox_agent.guard import WorkspaceGuard
from sandbox_agent.log import configure_logging
from sandbox_agent.server import run_stdio

logger = logging.getLogger("sandbox_agent.cli")

_defaults = AgentConfig()


@click.group()
def main():
    """Sandbox agent: confined file and shell operations over stdio JSON-RPC."""
    pass


@main.command()
@click.option("--shell", default=_defaults.shell, envvar="SANDBOX_AGENT_SHELL", help="Shell used for executeCommand")
@click.option("--claude-bin", default=_defaults.claude_bin, envvar="SANDBOX_AGENT_CLAUDE_BIN", help="claude-code executable")
@click.option("--command-timeout-ms", default=_defaults.command_timeout_ms, type=int,
              envvar="SANDBOX_AGENT_COMMAND_TIMEOUT_MS", help="Default executeCommand timeout")
@click.option("--agent-timeout-ms", default=_defaults.agent_timeout_ms, type=int,
              envvar="SANDBOX_AGENT_AGENT_TIMEOUT_MS", help="runClaudeCode timeout")
@click.option("--kill-grace-s", default=_defaults.kill_grace_s, type=float,
              envvar="SANDBOX_AGENT_KILL_GRACE_S", help="Seconds between SIGTERM and SIGKILL")
@click.option("--max-line-bytes", default=_defaults.max_line_bytes, type=int,
              envvar="SANDBOX_AGENT_MAX_LINE_BYTES", help="Longest accepted request line")
@click.option("--log-level", default=_defaults.log_level, envvar="SANDBOX_AGENT_LOG_LEVEL",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def serve(shell: str, claude_bin: str, command_timeout_ms: int, agent_timeout_ms: int,
          kill_grace_s: float, max_line_bytes: int, log_level: str):
    """Serve requests on stdin, responses on stdout, logs on stderr."""
    configure_logging(log_level)
    config = AgentConfig(
        shell=shell,
        claude_bin=claude_bin,
        command_timeout_ms=command_timeout_ms,
        agent_timeout_ms=agent_timeout_ms,
        kill_grace_s=kill_grace_s,
        max_line_bytes=max_line_bytes,
        log_level=log_level,
    )
    try:
        code = asyncio.run(run_stdio(config))
    except Exception:
        logger.exception("Sandbox agent failed")
        sys.exit(1)
    sys.exit(code)


@main.command()
@click.argument("command")
@click.option("--workspace", required=True, type=click.Path(exists=True, file_okay=False), help="Workspace root")
@click.option("--cwd", default="", help="Working directory (defaults to the workspace)")
def check(command: str, workspace: str, cwd: str):
    """Check a command against the workspace guard without running it."""
    guard = WorkspaceGuard.for_workspace(workspace)
    try:
        guard.validate_command(command, cwd or workspace)
    except ValidationError as e:
        click.echo(f"blocked: {e}")
        sys.exit(1)
    click.echo("allowed")


if __name__ == "__main__":
    main()
