"""Tests for the sandbox agent method handlers."""

import os
import stat

import pytest

from sandbox_agent.agent import AgentState, AgentStatus, SandboxAgent
from sandbox_agent.config import AgentConfig
from sandbox_agent.errors import (
    CommandBlockedError,
    CommandTimeoutError,
    ExecutionError,
    InvalidParamsError,
    MethodNotFoundError,
    NotFoundError,
    OutsideWorkspaceError,
    ShuttingDownError,
    WorkspaceNotConfiguredError,
)


@pytest.fixture
def ws(tmp_path):
    root = tmp_path / "ws"
    root.mkdir()
    return root


@pytest.fixture
def agent(tmp_path):
    return SandboxAgent(AgentConfig(kill_grace_s=0.2, claude_bin=str(tmp_path / "claude")))


@pytest.fixture
async def configured(agent, ws):
    await agent.handle("setWorkspace", {"path": str(ws), "altPath": "/Users/me/project"})
    return agent


class TestLifecycleState:
    async def test_ping(self, agent):
        assert await agent.handle("ping") == {"pong": True}

    async def test_starts_unconfigured(self, agent):
        assert agent.state.status == AgentStatus.UNCONFIGURED
        with pytest.raises(WorkspaceNotConfiguredError):
            await agent.handle("readFile", {"path": "/tmp/x"})

    async def test_set_workspace(self, configured, ws):
        assert configured.state.status == AgentStatus.CONFIGURED
        assert configured.state.workspace == ws.resolve()
        assert configured.state.host_workspace == "/Users/me/project"

    @pytest.mark.parametrize("alias", ["macPath", "windowsPath"])
    async def test_set_workspace_alt_aliases(self, agent, ws, alias):
        await agent.handle("setWorkspace", {"path": str(ws), alias: "C:\\proj"})
        assert agent.state.host_workspace == "C:\\proj"

    async def test_set_workspace_alt_defaults_to_path(self, agent, ws):
        await agent.handle("setWorkspace", {"path": str(ws)})
        assert agent.state.host_workspace == str(ws)

    async def test_set_workspace_missing_dir(self, agent, tmp_path):
        with pytest.raises(InvalidParamsError):
            await agent.handle("setWorkspace", {"path": str(tmp_path / "nope")})
        assert agent.state.workspace is None

    async def test_workspace_reconfigurable(self, configured, tmp_path):
        other = tmp_path / "other"
        other.mkdir()
        await configured.handle("setWorkspace", {"path": str(other)})
        assert configured.state.workspace == other.resolve()

    async def test_context_snapshots_workspace(self, configured, ws, tmp_path):
        ctx = configured.context()
        other = tmp_path / "other"
        other.mkdir()
        await configured.handle("setWorkspace", {"path": str(other)})
        assert ctx.guard.root == ws.resolve()
        assert configured.context().guard.root == other.resolve()

    async def test_unknown_method(self, agent):
        with pytest.raises(MethodNotFoundError) as exc:
            await agent.handle("frobnicate", {})
        assert str(exc.value) == "Unknown method: frobnicate"

    async def test_shutdown(self, configured):
        assert await configured.handle("shutdown") == {"success": True}
        assert configured.state.shutting_down
        with pytest.raises(ShuttingDownError):
            await configured.handle("ping")

    def test_separate_states_are_independent(self, tmp_path):
        a, b = AgentState(), AgentState()
        a.set_workspace(str(tmp_path))
        assert b.workspace is None


class TestExecuteCommand:
    async def test_echo(self, configured):
        result = await configured.handle("executeCommand", {"command": "echo hi"})
        assert result == {"code": 0, "stdout": "hi\n", "stderr": ""}

    async def test_default_cwd_is_workspace(self, configured, ws):
        result = await configured.handle("executeCommand", {"command": "pwd"})
        assert result["stdout"].strip() == str(ws.resolve())

    async def test_nonzero_exit_is_a_result(self, configured):
        result = await configured.handle("executeCommand", {"command": "echo bad >&2; exit 4"})
        assert result == {"code": 4, "stdout": "", "stderr": "bad\n"}

    async def test_injected_env(self, configured, ws):
        result = await configured.handle(
            "executeCommand",
            {"command": "echo $WORKSPACE:$HOST_WORKSPACE:$EXTRA", "env": {"EXTRA": "x", "WORKSPACE": "spoofed"}},
        )
        assert result["stdout"].strip() == f"{ws.resolve()}:/Users/me/project:x"

    async def test_blocked_before_spawn(self, configured, ws, monkeypatch):
        async def fail(*args, **kwargs):
            raise AssertionError("process should not be spawned")

        monkeypatch.setattr(configured.executor, "run", fail)
        with pytest.raises(CommandBlockedError) as exc:
            await configured.handle("executeCommand", {"command": "rm -rf /", "cwd": str(ws)})
        assert "blocked" in str(exc.value)

    async def test_cwd_outside(self, configured, tmp_path):
        with pytest.raises(OutsideWorkspaceError):
            await configured.handle("executeCommand", {"command": "ls", "cwd": str(tmp_path)})

    async def test_timeout(self, configured):
        with pytest.raises(CommandTimeoutError):
            await configured.handle("executeCommand", {"command": "sleep 10", "timeout": 200})

    async def test_invalid_params(self, configured):
        with pytest.raises(InvalidParamsError):
            await configured.handle("executeCommand", {"command": "ls", "timeout": -5})
        with pytest.raises(InvalidParamsError):
            await configured.handle("executeCommand", {})


class TestFileMethods:
    async def test_write_then_read(self, configured, ws):
        path = str(ws / "a.txt")
        assert await configured.handle("writeFile", {"path": path, "content": "hi"}) == {"success": True}
        assert await configured.handle("readFile", {"path": path}) == {"content": "hi"}

    async def test_list_directory(self, configured, ws):
        (ws / "f.bin").write_bytes(b"1234567")
        (ws / "d").mkdir()
        result = await configured.handle("listDirectory", {"path": str(ws)})
        assert result == {
            "entries": [
                {"name": "d", "isDirectory": True},
                {"name": "f.bin", "isDirectory": False, "size": 7},
            ]
        }

    async def test_exists_delete(self, configured, ws):
        path = str(ws / "x.txt")
        await configured.handle("writeFile", {"path": path, "content": ""})
        assert await configured.handle("fileExists", {"path": path}) == {"exists": True}
        assert await configured.handle("deleteFile", {"path": path}) == {"success": True}
        assert await configured.handle("fileExists", {"path": path}) == {"exists": False}
        assert await configured.handle("deleteFile", {"path": path}) == {"success": True}

    @pytest.mark.parametrize("params", [{}, {"path": None}, {"path": 3}, {"path": "/etc/passwd"}])
    async def test_file_exists_never_raises(self, configured, params):
        assert await configured.handle("fileExists", params) == {"exists": False}

    async def test_file_exists_unconfigured(self, agent):
        assert await agent.handle("fileExists", {"path": "/tmp"}) == {"exists": False}

    async def test_create_directory_and_copy(self, configured, ws):
        assert await configured.handle("createDirectory", {"path": str(ws / "a" / "b")}) == {"success": True}
        (ws / "src.txt").write_text("data")
        result = await configured.handle("copyFile", {"src": str(ws / "src.txt"), "dest": str(ws / "a" / "b" / "c" / "d.txt")})
        assert result == {"success": True}
        assert (ws / "a" / "b" / "c" / "d.txt").read_text() == "data"

    async def test_read_missing(self, configured, ws):
        with pytest.raises(NotFoundError):
            await configured.handle("readFile", {"path": str(ws / "missing.txt")})


class TestRunClaudeCode:
    def _stub(self, tmp_path, body):
        stub = tmp_path / "claude"
        stub.write_text("#!/bin/sh\n" + body)
        stub.chmod(stub.stat().st_mode | stat.S_IXUSR)
        return stub

    async def test_messages(self, configured, tmp_path):
        self._stub(tmp_path, "echo '{\"type\":\"result\",\"ok\":true}'\necho done\n")
        result = await configured.handle("runClaudeCode", {"prompt": "hello"})
        assert result == {"messages": [{"type": "result", "ok": True}, {"type": "text", "content": "done"}]}

    async def test_runs_in_workspace(self, configured, tmp_path, ws):
        self._stub(tmp_path, "pwd\n")
        result = await configured.handle("runClaudeCode", {"prompt": "p"})
        assert result["messages"][0]["content"] == str(ws.resolve())

    async def test_camel_case_params(self, configured, tmp_path, ws):
        self._stub(tmp_path, "for a in \"$@\"; do echo \"$a\"; done\n")
        result = await configured.handle(
            "runClaudeCode", {"prompt": "p", "maxTurns": 3, "systemPrompt": "sys", "model": "m"}
        )
        lines = [m["content"] for m in result["messages"]]
        assert lines == ["--print", "--model", "m", "--max-turns", "3", "--system-prompt", "sys", "p"]

    async def test_failure(self, configured, tmp_path):
        self._stub(tmp_path, "echo oops >&2\nexit 2\n")
        with pytest.raises(ExecutionError) as exc:
            await configured.handle("runClaudeCode", {"prompt": "p"})
        assert exc.value.exit_code == 2
        assert exc.value.stderr == "oops\n"

    async def test_cwd_outside(self, configured, tmp_path):
        self._stub(tmp_path, "echo hi\n")
        with pytest.raises(OutsideWorkspaceError):
            await configured.handle("runClaudeCode", {"prompt": "p", "cwd": os.fspath(tmp_path)})
