"""Exit status classification.

Exit codes follow GNU timeout:

- normal exit: the child's own code
- timed out, child exited after the signal: 124
- forcibly killed after the kill-after grace period: 137 (128 + SIGKILL)
- internal or unclassified failure: 125
- command found but not executable: 126
- command not found: 127
"""

from __future__ import annotations

import errno
from dataclasses import dataclass
from enum import IntEnum

__all__ = [
    "EXIT_NORMAL",
    "EXIT_TIMED_OUT",
    "EXIT_UNKNOWN_ERR",
    "EXIT_CANNOT_INVOKE",
    "EXIT_NOT_FOUND",
    "EXIT_KILLED",
    "ExitPhase",
    "ExitStatus",
    "classify_returncode",
    "resolve_spawn_exit_code",
]

EXIT_NORMAL = 0
EXIT_TIMED_OUT = 124
EXIT_UNKNOWN_ERR = 125
EXIT_CANNOT_INVOKE = 126
EXIT_NOT_FOUND = 127
EXIT_KILLED = 137

# 128 + signal number, the shell convention for signal deaths
_SIGNAL_EXIT_BASE = 128


class ExitPhase(IntEnum):
    """How far escalation got before the child exited.

    Ordered: a run only ever moves NORMAL -> TIMED_OUT -> KILLED.
    """

    NORMAL = 0
    TIMED_OUT = 1
    KILLED = 2

    def advance(self, phase: ExitPhase) -> ExitPhase:
        """Return the later of the two phases."""
        return max(self, phase)


@dataclass(frozen=True)
class ExitStatus:
    """Exit information of a supervised command.

    Attributes:
        code: The child's exit code (128 + N if it died from signal N)
        signaled: Whether the child itself was terminated by a signal
        phase: Escalation phase reached before the child exited
    """

    code: int = EXIT_NORMAL
    signaled: bool = False
    phase: ExitPhase = ExitPhase.NORMAL

    @property
    def is_timed_out(self) -> bool:
        return self.phase in (ExitPhase.TIMED_OUT, ExitPhase.KILLED)

    @property
    def is_killed(self) -> bool:
        return self.phase == ExitPhase.KILLED

    @property
    def exit_code(self) -> int:
        """Exit code for command line tools, aware of escalation."""
        if self.is_killed:
            return EXIT_KILLED
        if self.is_timed_out:
            return EXIT_TIMED_OUT
        return self.code

    @property
    def child_exit_code(self) -> int:
        """Exit code of the child itself, regardless of escalation."""
        return self.code


def classify_returncode(returncode: int | None) -> tuple[int, bool]:
    """Convert an asyncio/subprocess returncode into ``(code, signaled)``.

    A negative returncode -N means the child died from signal N and is
    reported as 128 + N. An unknown result (None) maps to ``(0, False)``.
    """
    if returncode is None:
        return EXIT_NORMAL, False
    if returncode < 0:
        return _SIGNAL_EXIT_BASE - returncode, True
    return returncode, False


def resolve_spawn_exit_code(exc: BaseException) -> int:
    """Map a spawn-time error to a "could not execute" exit code."""
    if isinstance(exc, FileNotFoundError):
        return EXIT_NOT_FOUND
    if isinstance(exc, PermissionError):
        return EXIT_CANNOT_INVOKE
    if isinstance(exc, OSError):
        if exc.errno == errno.ENOENT:
            return EXIT_NOT_FOUND
        if exc.errno in (errno.EACCES, errno.EPERM, errno.ENOEXEC, errno.EISDIR):
            return EXIT_CANNOT_INVOKE
    return EXIT_UNKNOWN_ERR
