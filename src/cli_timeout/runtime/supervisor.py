"""Process supervisor with timeout escalation.

cli-timeout runtime module

This module provides:
- Child process spawn with optional process group isolation
- The escalation loop: timeout -> signal, kill-after -> SIGKILL
- Exactly one ExitStatus per invocation, delivered through a RunHandle

Key design points:
- Three event sources (process exit, timeout, kill-after) are asyncio
  futures tagged with an _Event and multiplexed with asyncio.wait
- Process exit comes from the protocol's process_exited callback, so a
  descendant holding the output pipes cannot delay it
- Both timers are armed once, right after spawn, from the same origin
- Signal targeting (process vs. process group) is fixed at spawn
- Signal delivery is best effort; only spawn failure raises
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from ..errors import HandleConsumedError, SpawnError
from ..signals import resolve_signal
from .exit_status import (
    ExitPhase,
    ExitStatus,
    classify_returncode,
    resolve_spawn_exit_code,
)

__all__ = [
    "RunHandle",
    "SignalTarget",
    "Supervisor",
    "TargetsGroup",
    "TargetsProcess",
    "TimeoutSpec",
    "resolve_target",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# StreamReader buffer limit, same as asyncio.create_subprocess_exec
_STREAM_LIMIT = 2**16


@dataclass(frozen=True)
class TimeoutSpec:
    """Per-invocation configuration of a supervised command.

    Attributes:
        argv: Command line arguments (first element is the executable)
        duration: Seconds before the termination signal is sent
        kill_after: Extra seconds after the signal before SIGKILL (0 = never)
        signal: Signal sent on timeout (None = platform default)
        foreground: Signal the child's whole process group, not just the child
        cwd: Working directory for the process (None = inherit)
        env: Environment variables (None = inherit parent)
    """

    argv: list[str]
    duration: float
    kill_after: float = 0.0
    signal: signal.Signals | None = None
    foreground: bool = False
    cwd: Path | None = None
    env: Mapping[str, str] | None = None

    def __post_init__(self) -> None:
        if not self.argv:
            raise ValueError("argv must not be empty")
        if self.duration <= 0:
            raise ValueError(f"duration must be positive, got {self.duration}")
        if self.kill_after < 0:
            raise ValueError(f"kill_after must not be negative, got {self.kill_after}")


class SignalTarget(Protocol):
    """Where escalation signals are delivered."""

    def terminate(self, sig: signal.Signals) -> None: ...

    def kill(self) -> None: ...


@dataclass
class TargetsProcess:
    """Deliver signals to the child process alone."""

    process: asyncio.subprocess.Process

    def terminate(self, sig: signal.Signals) -> None:
        try:
            self.process.send_signal(sig)
            logger.debug(f"Sent {sig.name} to pid={self.process.pid}")
        except ProcessLookupError:
            logger.debug(f"Process already exited pid={self.process.pid}")
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to send {sig.name} to pid={self.process.pid}: {e}")

    def kill(self) -> None:
        _kill_process(self.process)


@dataclass
class TargetsGroup:
    """Deliver signals to the child's whole process group.

    The child is spawned as the leader of a new session (POSIX) or a new
    process group (Windows), so its pid is also its group id.
    """

    process: asyncio.subprocess.Process

    def terminate(self, sig: signal.Signals) -> None:
        if IS_WINDOWS:
            # Only CTRL_BREAK_EVENT reaches a whole group on Windows
            self._windows_break()
            return
        self._killpg(sig)

    def kill(self) -> None:
        if IS_WINDOWS:
            _kill_process(self.process)
            return
        self._killpg(signal.SIGKILL)

    def _killpg(self, sig: signal.Signals) -> None:
        pgid = self.process.pid
        try:
            os.killpg(pgid, sig)
            logger.debug(f"Sent {sig.name} to process group pgid={pgid}")
        except ProcessLookupError:
            logger.debug(f"Process group already gone pgid={pgid}")
        except OSError as e:
            logger.warning(f"killpg({pgid}, {sig.name}) failed: {e}")

    def _windows_break(self) -> None:
        try:
            os.kill(self.process.pid, signal.CTRL_BREAK_EVENT)
            logger.debug(f"Sent CTRL_BREAK_EVENT to pid={self.process.pid}")
        except (ProcessLookupError, OSError) as e:
            logger.warning(f"CTRL_BREAK_EVENT failed for pid={self.process.pid}: {e}")


def _kill_process(process: asyncio.subprocess.Process) -> None:
    """Kill the process through its handle, ignoring a vanished process."""
    try:
        process.kill()
        logger.debug(f"Called kill() on pid={process.pid}")
    except ProcessLookupError:
        logger.debug(f"Process already exited pid={process.pid}")
    except OSError as e:
        logger.warning(f"kill() failed for pid={process.pid}: {e}")


def resolve_target(process: asyncio.subprocess.Process, foreground: bool) -> SignalTarget:
    """Pick the signal target for a freshly spawned process."""
    if foreground:
        return TargetsGroup(process)
    return TargetsProcess(process)


class _SupervisedProtocol(asyncio.subprocess.SubprocessStreamProtocol):
    """Stream protocol that reports the child's exit the moment it happens.

    Process.wait() only returns once every pipe is closed, and a descendant
    that inherited stdout or stderr can keep them open long after the child
    is gone.
    """

    def __init__(
        self,
        exited: asyncio.Future[int | None],
        limit: int,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        super().__init__(limit=limit, loop=loop)
        self._exited = exited

    def process_exited(self) -> None:
        # Read the returncode first, the base class may drop the transport
        if not self._exited.done():
            self._exited.set_result(self._transport.get_returncode())
        super().process_exited()


class _Event(Enum):
    """Event sources of the escalation loop."""

    EXITED = "exited"
    TIMED_OUT = "timed_out"
    KILL_AFTER = "kill_after"


class RunHandle:
    """Single-use delivery of one invocation's ExitStatus.

    Attributes:
        process: The supervised child process
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        transport: asyncio.SubprocessTransport,
        task: asyncio.Task[ExitStatus],
    ) -> None:
        self.process = process
        self._transport = transport
        self._task = task
        self._consumed = False

    @property
    def pid(self) -> int:
        return self.process.pid

    async def wait(self) -> ExitStatus:
        """Wait for the child to exit and return its ExitStatus.

        Raises:
            HandleConsumedError: If the status was already taken
        """
        if self._consumed:
            raise HandleConsumedError(f"exit status of pid={self.pid} already consumed")
        self._consumed = True
        return await self._task

    def close_pipes(self) -> None:
        """Close our ends of the child's stdout and stderr pipes.

        Readers of process.stdout / process.stderr see EOF. Used once the
        child has exited while a descendant still holds the pipes open.
        """
        for fd in (1, 2):
            pipe = self._transport.get_pipe_transport(fd)
            if pipe is not None:
                pipe.close()


class Supervisor:
    """Spawns a command and enforces its TimeoutSpec.

    Example:
        supervisor = Supervisor()
        spec = TimeoutSpec(argv=["sleep", "10"], duration=1.0, kill_after=2.0)

        handle = await supervisor.start(spec)
        status = await handle.wait()
        print(status.exit_code)  # 124
    """

    async def start(
        self,
        spec: TimeoutSpec,
        *,
        stdin: Any = None,
        stdout: Any = None,
        stderr: Any = None,
    ) -> RunHandle:
        """Spawn the command and start the escalation loop.

        Args:
            spec: Invocation configuration
            stdin: stdin for the child (None = inherit)
            stdout: stdout for the child (None = inherit)
            stderr: stderr for the child (None = inherit)

        Returns:
            Handle delivering the single ExitStatus

        Raises:
            SpawnError: If the process could not be created
        """
        sig = resolve_signal(spec.signal)
        kwargs = self._build_subprocess_kwargs(spec)
        loop = asyncio.get_running_loop()
        exited: asyncio.Future[int | None] = loop.create_future()

        try:
            transport, protocol = await loop.subprocess_exec(
                lambda: _SupervisedProtocol(exited, limit=_STREAM_LIMIT, loop=loop),
                *spec.argv,
                stdin=stdin,
                stdout=stdout,
                stderr=stderr,
                **kwargs,
            )
        except OSError as e:
            raise SpawnError(resolve_spawn_exit_code(e), e) from e

        process = asyncio.subprocess.Process(transport, protocol, loop)

        logger.debug(
            f"Started subprocess pid={process.pid} argv={spec.argv[0]} "
            f"duration={spec.duration}s kill_after={spec.kill_after}s "
            f"signal={sig.name} foreground={spec.foreground}"
        )

        target = resolve_target(process, spec.foreground)
        events = self._arm_events(exited, spec)
        task = asyncio.create_task(self._escalate(process, target, sig, events))
        return RunHandle(process, transport, task)

    def _build_subprocess_kwargs(self, spec: TimeoutSpec) -> dict[str, Any]:
        """Build platform-specific subprocess kwargs.

        Args:
            spec: Invocation configuration

        Returns:
            Dict of kwargs for loop.subprocess_exec
        """
        kwargs: dict[str, Any] = {}

        if spec.cwd is not None:
            kwargs["cwd"] = spec.cwd
        if spec.env is not None:
            kwargs["env"] = dict(spec.env)

        if spec.foreground:
            if IS_WINDOWS:
                kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
            else:
                # POSIX: start_new_session (equivalent to setsid)
                kwargs["start_new_session"] = True

        return kwargs

    def _arm_events(
        self,
        exited: asyncio.Future[int | None],
        spec: TimeoutSpec,
    ) -> dict[asyncio.Future[Any], _Event]:
        """Create the event sources; both timers share the same origin."""
        events: dict[asyncio.Future[Any], _Event] = {
            exited: _Event.EXITED,
            asyncio.create_task(asyncio.sleep(spec.duration)): _Event.TIMED_OUT,
        }
        if spec.kill_after > 0:
            kill_at = spec.duration + spec.kill_after
            events[asyncio.create_task(asyncio.sleep(kill_at))] = _Event.KILL_AFTER
        return events

    async def _escalate(
        self,
        process: asyncio.subprocess.Process,
        target: SignalTarget,
        sig: signal.Signals,
        pending: dict[asyncio.Future[Any], _Event],
    ) -> ExitStatus:
        """Wait for the child, escalating on timeout and kill-after.

        Only the EXITED event ends the loop. Escalation events change the
        phase, which decides how the exit code is reported.
        """
        phase = ExitPhase.NORMAL

        try:
            while True:
                done, _ = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                fired = {pending.pop(task): task for task in done}

                if _Event.EXITED in fired:
                    code, signaled = classify_returncode(fired[_Event.EXITED].result())
                    status = ExitStatus(code=code, signaled=signaled, phase=phase)
                    logger.debug(
                        f"Subprocess exited pid={process.pid} code={code} "
                        f"signaled={signaled} phase={phase.name}"
                    )
                    return status

                if _Event.TIMED_OUT in fired:
                    phase = phase.advance(ExitPhase.TIMED_OUT)
                    logger.debug(f"Timed out, sending {sig.name} to pid={process.pid}")
                    target.terminate(sig)

                if _Event.KILL_AFTER in fired:
                    phase = phase.advance(ExitPhase.KILLED)
                    logger.debug(f"Kill-after expired, killing pid={process.pid}")
                    target.kill()
                    # The group kill may not have reached the handle yet
                    _kill_process(process)

        except asyncio.CancelledError:
            logger.debug(f"Supervision cancelled, killing pid={process.pid}")
            if process.returncode is None:
                target.kill()
                _kill_process(process)
            raise

        finally:
            for task in pending:
                task.cancel()
