"""Runtime module for supervised command execution.

This module spawns a command, enforces its time budget by escalating from a
termination signal to a forced kill, and reports a GNU timeout compatible
exit status.
"""

from __future__ import annotations

from .exit_status import (
    EXIT_KILLED,
    EXIT_TIMED_OUT,
    EXIT_UNKNOWN_ERR,
    ExitPhase,
    ExitStatus,
)
from .invoke import RunResult, run, run_async, run_simple, run_simple_async
from .supervisor import RunHandle, Supervisor, TimeoutSpec

__all__ = [
    "EXIT_KILLED",
    "EXIT_TIMED_OUT",
    "EXIT_UNKNOWN_ERR",
    "ExitPhase",
    "ExitStatus",
    "RunHandle",
    "RunResult",
    "Supervisor",
    "TimeoutSpec",
    "run",
    "run_async",
    "run_simple",
    "run_simple_async",
]
