"""Invocation facades over the Supervisor.

- run / run_async: capture stdout and stderr, return them with the status
- run_simple / run_simple_async: relay output live, return an exit code

The synchronous variants drive the async ones through anyio.run.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from functools import partial
from typing import Any, BinaryIO

import anyio

from ..errors import SpawnError
from .exit_status import ExitStatus
from .supervisor import RunHandle, Supervisor, TimeoutSpec

__all__ = [
    "RunResult",
    "run",
    "run_async",
    "run_simple",
    "run_simple_async",
]

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 4096

# Seconds to let output reach EOF after the child exits before the pipes
# are closed on a descendant still holding them
PIPE_DRAIN_TIMEOUT = 0.5


@dataclass(frozen=True)
class RunResult:
    """Outcome of a buffered run.

    Attributes:
        status: Exit status of the command
        stdout: Captured stdout, decoded as UTF-8
        stderr: Captured stderr, decoded as UTF-8
    """

    status: ExitStatus
    stdout: str
    stderr: str


async def _collect(stream: asyncio.StreamReader | None) -> bytes:
    """Read a stream to EOF."""
    chunks: list[bytes] = []

    if stream:
        while True:
            chunk = await stream.read(_CHUNK_SIZE)
            if not chunk:
                break
            chunks.append(chunk)

    return b"".join(chunks)


async def _forward(stream: asyncio.StreamReader | None, sink: BinaryIO) -> None:
    """Copy a stream to sink until EOF, flushing every chunk.

    If the sink fails (e.g. a closed pipe downstream), the rest of the
    stream is read and discarded so the child never blocks on a full pipe.
    """
    if stream is None:
        return

    sink_failed = False
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        if sink_failed:
            continue
        try:
            sink.write(chunk)
            sink.flush()
        except OSError as e:
            logger.warning(f"Output sink failed, discarding further output: {e}")
            sink_failed = True


async def _finish_streams(handle: RunHandle, readers: list[asyncio.Task[Any]]) -> None:
    """Wait for the stream readers of an exited child.

    Readers normally hit EOF right after the child exits. If a descendant
    keeps the pipes open, they are closed after PIPE_DRAIN_TIMEOUT.
    """
    _, pending = await asyncio.wait(readers, timeout=PIPE_DRAIN_TIMEOUT)
    if pending:
        logger.debug(f"Output pipes still open after pid={handle.pid} exited, closing them")
        handle.close_pipes()
        await asyncio.gather(*pending)


async def run_async(spec: TimeoutSpec, *, supervisor: Supervisor | None = None) -> RunResult:
    """Run a command, capturing its output.

    Args:
        spec: Invocation configuration
        supervisor: Supervisor to use (default: a new one)

    Returns:
        RunResult with the exit status and captured output

    Raises:
        SpawnError: If the process could not be created
    """
    supervisor = supervisor or Supervisor()

    try:
        handle = await supervisor.start(
            spec,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except SpawnError as e:
        logger.error(f"Failed to start {spec.argv[0]}: {e}")
        raise

    collectors = [
        asyncio.create_task(_collect(handle.process.stdout)),
        asyncio.create_task(_collect(handle.process.stderr)),
    ]

    status = await handle.wait()
    await _finish_streams(handle, collectors)
    stdout, stderr = (task.result() for task in collectors)

    return RunResult(
        status=status,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


async def run_simple_async(
    spec: TimeoutSpec,
    preserve_status: bool = False,
    *,
    stdout: BinaryIO | None = None,
    stderr: BinaryIO | None = None,
    supervisor: Supervisor | None = None,
) -> int:
    """Run a command, relaying its output live, and return an exit code.

    Args:
        spec: Invocation configuration
        preserve_status: Return the child's own code even after escalation
        stdout: Binary sink for the child's stdout (default: sys.stdout)
        stderr: Binary sink for the child's stderr (default: sys.stderr)
        supervisor: Supervisor to use (default: a new one)

    Returns:
        The child's exit code if preserve_status, else the escalation-aware
        code (124/137 on timeout). A spawn failure returns 125/126/127.
    """
    supervisor = supervisor or Supervisor()
    out_sink = stdout if stdout is not None else sys.stdout.buffer
    err_sink = stderr if stderr is not None else sys.stderr.buffer

    try:
        handle = await supervisor.start(
            spec,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except SpawnError as e:
        logger.error(f"Failed to start {spec.argv[0]}: {e}")
        return e.exit_code

    forwarders = [
        asyncio.create_task(_forward(handle.process.stdout, out_sink)),
        asyncio.create_task(_forward(handle.process.stderr, err_sink)),
    ]

    status = await handle.wait()
    # Trailing output may still be in the pipes
    await _finish_streams(handle, forwarders)

    if preserve_status:
        return status.child_exit_code
    return status.exit_code


def run(spec: TimeoutSpec) -> RunResult:
    """Synchronous form of run_async."""
    return anyio.run(run_async, spec, backend="asyncio")


def run_simple(
    spec: TimeoutSpec,
    preserve_status: bool = False,
    *,
    stdout: BinaryIO | None = None,
    stderr: BinaryIO | None = None,
) -> int:
    """Synchronous form of run_simple_async."""
    return anyio.run(
        partial(run_simple_async, spec, preserve_status, stdout=stdout, stderr=stderr),
        backend="asyncio",
    )
