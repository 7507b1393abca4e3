"""Runs the claude-code CLI non-interactively and parses what it prints."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

from sandbox_agent.config import AgentConfig
from sandbox_agent.errors import ExecutionError
from sandbox_agent.process import ProcessExecutor, merge_env
from sandbox_agent.types import text_message

logger = logging.getLogger(__name__)


def build_claude_args(
    prompt: str,
    model: str | None = None,
    max_turns: int | None = None,
    system_prompt: str | None = None,
) -> list[str]:
    """CLI arguments for a single --print run. The prompt always goes last."""
    args = ["--print"]
    if model:
        args.extend(["--model", model])
    if max_turns:
        args.extend(["--max-turns", str(max_turns)])
    if system_prompt:
        args.extend(["--system-prompt", system_prompt])
    args.append(prompt)
    return args


def parse_agent_output(output: str) -> list[dict[str, Any]]:
    """One message per non-blank line; lines that are not JSON objects become text."""
    messages: list[dict[str, Any]] = []
    for raw in output.split("\n"):
        line = raw.rstrip("\r")
        if not line.strip():
            continue
        try:
            parsed = json.loads(line)
        except ValueError:
            messages.append(text_message(line))
            continue
        messages.append(parsed if isinstance(parsed, dict) else text_message(line))
    return messages


class AgentInvoker:
    """Spawns the coding CLI with the agent's long timeout."""

    def __init__(self, executor: ProcessExecutor, config: AgentConfig | None = None) -> None:
        self.executor = executor
        self.config = config or executor.config

    async def run(
        self,
        prompt: str,
        *,
        cwd: str | Path,
        model: str | None = None,
        max_turns: int | None = None,
        system_prompt: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        argv = [self.config.claude_bin, *build_claude_args(prompt, model, max_turns, system_prompt)]
        logger.info("Running %s in %s", self.config.claude_bin, cwd)
        result = await self.executor.run(
            argv,
            cwd=cwd,
            env=merge_env(env),
            timeout_ms=self.config.agent_timeout_ms,
        )
        if result.exit_code != 0:
            raise ExecutionError(
                f"claude-code exited with code {result.exit_code}: {result.stderr}",
                exit_code=result.exit_code,
                stderr=result.stderr,
            )
        return parse_agent_output(result.stdout)
