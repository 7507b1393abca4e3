"""Stdio transport and process lifecycle for the sandbox agent.

Requests arrive one JSON object per line on stdin and each one is handled
in its own task, so a long command never blocks the reader. Responses go
out one JSON object per line on the reserved protocol stream, in whatever
order the handlers finish; the host correlates them by id.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from typing import Any, BinaryIO, Callable

from sandbox_agent.agent import SandboxAgent
from sandbox_agent.config import AgentConfig
from sandbox_agent.errors import as_sandbox_error
from sandbox_agent.protocol import (
    UNKNOWN_ID,
    RequestParseError,
    encode,
    error_response,
    parse_request,
    result_response,
)

logger = logging.getLogger(__name__)

Writer = Callable[[bytes], None]


class LineTooLongError(ValueError):
    """An input line exceeded the reader's limit; it has been discarded."""


async def read_line(reader: asyncio.StreamReader) -> bytes:
    """Next line including its newline, the unterminated tail at EOF, or b"" once drained.

    An oversized line is consumed through its newline before LineTooLongError
    is raised, so its remainder is never read as a request of its own.
    """
    try:
        return await reader.readuntil(b"\n")
    except asyncio.IncompleteReadError as e:
        return e.partial
    except asyncio.LimitOverrunError as e:
        consumed = e.consumed
    while True:
        await reader.readexactly(consumed)
        try:
            await reader.readuntil(b"\n")
            break
        except asyncio.IncompleteReadError:
            break
        except asyncio.LimitOverrunError as e:
            consumed = e.consumed
    raise LineTooLongError("line exceeds the reader limit")


class AgentServer:
    """Reads requests from a stream and writes one response per request."""

    def __init__(self, agent: SandboxAgent, write: Writer) -> None:
        self.agent = agent
        self._write = write
        self._stop = asyncio.Event()
        self._tasks: set[asyncio.Task[None]] = set()
        self.stop_reason = ""

    async def handle_line(self, line: str | bytes) -> dict[str, Any]:
        """Turn one input line into exactly one response message."""
        try:
            request = parse_request(line)
        except RequestParseError as e:
            logger.error("Request failed: %s", e)
            return error_response(e.request_id, e)

        try:
            result = await self.agent.handle(request.method, request.params)
        except Exception as e:
            err = as_sandbox_error(e)
            if err is e:
                logger.error("Request %s (%s) failed: %s", request.id, request.method, err)
            else:
                logger.exception("Request %s (%s) raised unexpectedly", request.id, request.method)
            return error_response(request.id, err)
        return result_response(request.id, result)

    def send(self, message: dict[str, Any]) -> None:
        try:
            self._write(encode(message))
        except OSError as e:
            logger.error("Output stream unavailable: %s", e)
            self.stop("output closed")

    def stop(self, reason: str) -> None:
        if not self._stop.is_set():
            self.stop_reason = reason
            self._stop.set()

    async def _process(self, line: bytes) -> None:
        response = await self.handle_line(line)
        self.send(response)
        # The acknowledgement is on the wire before we stop
        if self.agent.state.shutting_down:
            self.stop("shutdown requested")

    def _spawn(self, line: bytes) -> None:
        task = asyncio.create_task(self._process(line))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def serve(self, reader: asyncio.StreamReader, handle_signals: bool = False) -> int:
        """Run until shutdown, end of input or a termination signal. Returns the exit status."""
        loop = asyncio.get_running_loop()
        if handle_signals:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, self._on_signal, sig)

        stopped = asyncio.ensure_future(self._stop.wait())
        try:
            while not self._stop.is_set():
                read = asyncio.ensure_future(read_line(reader))
                done, _ = await asyncio.wait({read, stopped}, return_when=asyncio.FIRST_COMPLETED)
                if read not in done:
                    read.cancel()
                    break
                try:
                    line = read.result()
                except LineTooLongError as e:
                    logger.error("Dropping oversized input line: %s", e)
                    self.send(error_response(UNKNOWN_ID, RequestParseError("Request line too long")))
                    continue
                if not line:
                    logger.info("Input stream closed, shutting down")
                    self.stop("input closed")
                    break
                if not line.strip():
                    continue
                self._spawn(line)
        finally:
            stopped.cancel()
            if handle_signals:
                for sig in (signal.SIGTERM, signal.SIGINT):
                    loop.remove_signal_handler(sig)
            await self._cancel_in_flight()
        return 0

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info("Received %s, shutting down", sig.name)
        self.stop(sig.name)

    async def _cancel_in_flight(self) -> None:
        pending = [t for t in self._tasks if not t.done()]
        if not pending:
            return
        logger.info("Cancelling %d in-flight request(s)", len(pending))
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)


def claim_stdout() -> BinaryIO:
    """Reserve the real stdout for protocol lines and point fd 1 at stderr.

    Anything that later prints to stdout, from this process or a library,
    lands on the diagnostic stream instead of corrupting the protocol.
    """
    sys.stdout.flush()
    protocol_out = os.fdopen(os.dup(sys.stdout.fileno()), "wb")
    os.dup2(sys.stderr.fileno(), sys.stdout.fileno())
    sys.stdout = sys.stderr
    return protocol_out


def stream_writer(out: BinaryIO) -> Writer:
    def write(data: bytes) -> None:
        out.write(data)
        out.flush()

    return write


async def open_stdin_reader(limit: int) -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=limit)
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    return reader


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    exc = context.get("exception")
    logger.error("Unhandled background error: %s", context.get("message", ""), exc_info=exc)


async def run_stdio(config: AgentConfig | None = None) -> int:
    """Serve the protocol over this process's stdin/stdout."""
    config = config or AgentConfig()
    asyncio.get_running_loop().set_exception_handler(_log_loop_exception)
    out = claim_stdout()
    reader = await open_stdin_reader(config.max_line_bytes)
    server = AgentServer(SandboxAgent(config), stream_writer(out))
    logger.info("Sandbox agent started (pid %d)", os.getpid())
    try:
        return await server.serve(reader, handle_signals=True)
    finally:
        logger.info("Sandbox agent stopped: %s", server.stop_reason or "unknown")
        out.close()
