"""The ``execute`` tool -- run a shell command with bounded output and a timeout."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import signal
import time
from collections.abc import AsyncIterator
from dataclasses import asdict, dataclass

from pydantic import BaseModel, ConfigDict

from aicli.errors import SpawnError
from aicli.tools.buffer import (
    DEFAULT_MAX_LINE_LEN,
    DEFAULT_MAX_LINES,
    BoundedLineBuffer,
    StreamName,
)

logger = logging.getLogger(__name__)

#: Wall-clock limit (seconds) for draining a command's output.
DEFAULT_TIMEOUT = 120.0

#: Seconds to wait after SIGTERM before SIGKILL.
DEFAULT_GRACE = 1.0

#: Exit code reported for a command killed on timeout (128 + SIGKILL).
KILLED_EXIT_CODE = 137

#: Exit code reported for any unsuccessful exit that was not a timeout.
FAILED_EXIT_CODE = -1

#: Shell used to interpret commands.
DEFAULT_SHELL = "/bin/sh"

#: StreamReader buffer limit; bytes of a line beyond this are discarded.
_STREAM_LIMIT = 1_048_576

#: Poll interval while waiting for a signalled process group to exit.
_GROUP_POLL = 0.05


class ExecuteArgs(BaseModel):
    """Arguments accepted by the ``execute`` tool."""

    model_config = ConfigDict(extra="ignore")

    command: str


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one command run; serialised straight into a tool response."""

    output: str
    timed_out: bool
    exit_code: int

    def to_json(self) -> str:
        return json.dumps(asdict(self))


class CommandExecutor:
    """Runs shell commands, capturing interleaved stdout/stderr lines.

    Both pipes are drained concurrently by two reader tasks that post lines
    onto one queue; a single consumer owns the :class:`BoundedLineBuffer`,
    so buffer order is arrival order.  The whole drain races a timeout.  On
    expiry the command's process group gets SIGTERM, then SIGKILL after a
    grace period, and is always reaped.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        grace: float = DEFAULT_GRACE,
        max_lines: int = DEFAULT_MAX_LINES,
        max_line_len: int = DEFAULT_MAX_LINE_LEN,
        shell: str = DEFAULT_SHELL,
    ) -> None:
        self._timeout = timeout
        self._grace = grace
        self._max_lines = max_lines
        self._max_line_len = max_line_len
        self._shell = shell

    async def execute(self, command: str) -> ExecutionResult:
        """Run *command* under the shell and report its output.

        Never raises for a timeout or a non-zero exit.

        Raises:
            SpawnError: If the shell itself cannot be started.
        """
        started = time.monotonic()
        buffer = BoundedLineBuffer(self._max_lines, self._max_line_len)
        timed_out = False
        exit_code = FAILED_EXIT_CODE

        async with self._spawn(command) as proc:
            try:
                status = await asyncio.wait_for(
                    _drain_and_wait(proc, buffer),
                    timeout=self._timeout,
                )
            except TimeoutError:
                logger.info(
                    "Command timed out after %.1fs, terminating pid %d",
                    self._timeout,
                    proc.pid,
                )
                timed_out = True
                await self._kill_group(proc)
            else:
                exit_code = status if status == 0 else FAILED_EXIT_CODE

        if timed_out:
            exit_code = KILLED_EXIT_CODE
        return ExecutionResult(
            output=buffer.render(started),
            timed_out=timed_out,
            exit_code=exit_code,
        )

    @contextlib.asynccontextmanager
    async def _spawn(self, command: str) -> AsyncIterator[asyncio.subprocess.Process]:
        """Start the shell and guarantee it is gone when the block exits."""
        try:
            proc = await asyncio.create_subprocess_exec(
                self._shell,
                "-c",
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
                limit=_STREAM_LIMIT,
            )
        except OSError as exc:
            msg = f"Failed to spawn shell {self._shell!r}: {exc}"
            raise SpawnError(msg) from exc

        logger.debug("Spawned pid %d: %s", proc.pid, command)
        try:
            yield proc
        finally:
            await self._terminate(proc)

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """Kill the group unless the shell already exited; always reap."""
        if proc.returncode is not None:
            return
        await self._kill_group(proc)

    async def _kill_group(self, proc: asyncio.subprocess.Process) -> None:
        """SIGTERM the group -> wait ``grace`` -> SIGKILL -> reap the shell.

        Runs even when the shell has exited: a backgrounded child can still
        hold the pipes open inside the group.
        """
        _signal_group(proc, signal.SIGTERM)
        deadline = time.monotonic() + self._grace
        while _group_alive(proc) and time.monotonic() < deadline:
            await asyncio.sleep(_GROUP_POLL)
        if _group_alive(proc):
            logger.info("Process group %d ignored SIGTERM, killing", proc.pid)
            _signal_group(proc, signal.SIGKILL)
        await proc.wait()


def _signal_group(proc: asyncio.subprocess.Process, sig: signal.Signals) -> None:
    """Signal the command's whole process group (it leads its own session)."""
    with contextlib.suppress(ProcessLookupError):
        os.killpg(proc.pid, sig)


def _group_alive(proc: asyncio.subprocess.Process) -> bool:
    try:
        os.killpg(proc.pid, 0)
    except ProcessLookupError:
        return False
    return True


async def _drain_and_wait(
    proc: asyncio.subprocess.Process,
    buffer: BoundedLineBuffer,
) -> int:
    await _drain(proc, buffer)
    return await proc.wait()


async def _drain(
    proc: asyncio.subprocess.Process,
    buffer: BoundedLineBuffer,
) -> None:
    """Move lines from both pipes into *buffer* until both hit EOF."""
    queue: asyncio.Queue[tuple[StreamName, str, float] | None] = asyncio.Queue()
    readers = [
        asyncio.create_task(_read_lines(proc.stdout, "stdout", queue)),
        asyncio.create_task(_read_lines(proc.stderr, "stderr", queue)),
    ]
    try:
        open_streams = len(readers)
        while open_streams:
            item = await queue.get()
            if item is None:
                open_streams -= 1
                continue
            stream, text, at = item
            buffer.push(stream, text, at)
        # Surface any read error from either side.
        for reader in readers:
            await reader
    finally:
        for reader in readers:
            if not reader.done():
                reader.cancel()
        await asyncio.gather(*readers, return_exceptions=True)


async def _read_lines(
    reader: asyncio.StreamReader | None,
    stream: StreamName,
    queue: asyncio.Queue[tuple[StreamName, str, float] | None],
) -> None:
    """Post each line of *reader* onto *queue*, then a ``None`` sentinel."""
    try:
        if reader is None:
            return
        while True:
            raw = await _read_line(reader)
            if not raw:
                return
            text = raw.decode("utf-8", errors="replace")
            text = text.removesuffix("\n").removesuffix("\r")
            queue.put_nowait((stream, text, time.monotonic()))
    finally:
        queue.put_nowait(None)


async def _read_line(reader: asyncio.StreamReader) -> bytes:
    """Read one line, keeping at most ``_STREAM_LIMIT`` bytes of it.

    Returns ``b""`` at EOF.
    """
    chunks: list[bytes] = []
    kept = 0
    while True:
        try:
            chunk = await reader.readuntil(b"\n")
        except asyncio.IncompleteReadError as exc:
            chunk = exc.partial
            done = True
        except asyncio.LimitOverrunError as exc:
            chunk = await reader.readexactly(exc.consumed)
            done = False
        else:
            done = True
        if kept < _STREAM_LIMIT:
            chunks.append(chunk[: _STREAM_LIMIT - kept])
            kept += len(chunks[-1])
        if done:
            return b"".join(chunks)

