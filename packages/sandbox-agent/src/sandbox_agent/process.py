"""Subprocess execution with timeouts and incremental output capture."""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal
from pathlib import Path
from typing import Mapping

from sandbox_agent.config import AgentConfig
from sandbox_agent.errors import CommandTimeoutError, SpawnError
from sandbox_agent.types import ExecResult

logger = logging.getLogger(__name__)

_READ_CHUNK = 64 * 1024
_PUMP_DRAIN_S = 1.0


def normalize_exit_code(returncode: int | None) -> int:
    """Map an unknown or signal-terminated exit status to 1."""
    if returncode is None or returncode < 0:
        return 1
    return returncode


def merge_env(
    overrides: Mapping[str, str] | None = None,
    injected: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Process environment, then caller overrides, then agent-injected vars."""
    env = dict(os.environ)
    if overrides:
        env.update(overrides)
    if injected:
        env.update(injected)
    return env


class ManagedProcess:
    """A running child process and the output it has produced so far."""

    def __init__(self, proc: asyncio.subprocess.Process, program: str, kill_grace_s: float = 2.0) -> None:
        self._proc = proc
        self.program = program
        self.kill_grace_s = kill_grace_s
        self._stdout: list[str] = []
        self._stderr: list[str] = []
        self._pumps = [
            asyncio.create_task(self._pump(proc.stdout, self._stdout)),
            asyncio.create_task(self._pump(proc.stderr, self._stderr)),
        ]

    @classmethod
    async def spawn(
        cls,
        argv: list[str],
        *,
        cwd: str | Path,
        env: Mapping[str, str],
        kill_grace_s: float = 2.0,
    ) -> ManagedProcess:
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd),
                env=dict(env),
                start_new_session=True,
            )
        except OSError as e:
            raise SpawnError(argv[0], cause=e) from e
        logger.debug("Spawned %s (pid %d)", argv[0], proc.pid)
        return cls(proc, argv[0], kill_grace_s=kill_grace_s)

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode

    @property
    def stdout(self) -> str:
        return "".join(self._stdout)

    @property
    def stderr(self) -> str:
        return "".join(self._stderr)

    @staticmethod
    async def _pump(stream: asyncio.StreamReader | None, sink: list[str]) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                break
            sink.append(decoder.decode(chunk))
        sink.append(decoder.decode(b"", final=True))

    async def wait(self, timeout_ms: int) -> ExecResult:
        """Wait for exit. On timeout or cancellation the process group is killed."""
        try:
            await asyncio.wait_for(self._proc.wait(), timeout=timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            logger.warning("%s (pid %d) timed out after %dms", self.program, self.pid, timeout_ms)
            await self.kill()
            raise CommandTimeoutError(self.program, timeout_ms) from None
        except asyncio.CancelledError:
            await self.kill()
            raise
        await self._drain_pumps()
        return ExecResult(
            stdout=self.stdout,
            stderr=self.stderr,
            exit_code=normalize_exit_code(self._proc.returncode),
        )

    async def kill(self) -> None:
        """SIGTERM the process group, then SIGKILL after the grace period."""
        if self._proc.returncode is None:
            self._signal_group(signal.SIGTERM)
            try:
                await asyncio.wait_for(self._proc.wait(), timeout=self.kill_grace_s)
            except asyncio.TimeoutError:
                pass
        # Grandchildren may outlive the leader; always sweep the group
        self._signal_group(signal.SIGKILL)
        if self._proc.returncode is None:
            await self._proc.wait()
        await self._drain_pumps()

    def _signal_group(self, sig: signal.Signals) -> None:
        try:
            os.killpg(self._proc.pid, sig)
        except (ProcessLookupError, PermissionError):
            pass

    async def _drain_pumps(self) -> None:
        _, pending = await asyncio.wait(self._pumps, timeout=_PUMP_DRAIN_S)
        for task in pending:
            task.cancel()


class ProcessExecutor:
    """Runs shell commands and programs for the agent."""

    def __init__(self, config: AgentConfig | None = None) -> None:
        self.config = config or AgentConfig()

    def workspace_env(self, workspace: str | None, host_workspace: str | None) -> dict[str, str]:
        return {
            self.config.workspace_env_var: workspace or "",
            self.config.host_workspace_env_var: host_workspace or "",
        }

    async def run(
        self,
        argv: list[str],
        *,
        cwd: str | Path,
        env: Mapping[str, str],
        timeout_ms: int,
    ) -> ExecResult:
        proc = await ManagedProcess.spawn(
            argv, cwd=cwd, env=env, kill_grace_s=self.config.kill_grace_s
        )
        return await proc.wait(timeout_ms)

    async def run_shell(
        self,
        command: str,
        *,
        cwd: str | Path,
        env: Mapping[str, str],
        timeout_ms: int | None = None,
    ) -> ExecResult:
        timeout_ms = timeout_ms or self.config.command_timeout_ms
        return await self.run(
            [self.config.shell, "-c", command], cwd=cwd, env=env, timeout_ms=timeout_ms
        )
