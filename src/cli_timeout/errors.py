"""Exception classes for cli-timeout."""

from __future__ import annotations

__all__ = [
    "CliTimeoutError",
    "SpawnError",
    "HandleConsumedError",
]


class CliTimeoutError(Exception):
    """Base exception for cli-timeout."""
    pass


class SpawnError(CliTimeoutError):
    """The child process could not be started.

    Attributes:
        exit_code: Exit code to report for the failed invocation
            (126/127/125 depending on the cause)
        cause: The underlying OS error
    """

    def __init__(self, exit_code: int, cause: BaseException) -> None:
        self.exit_code = exit_code
        self.cause = cause
        super().__init__(f"exit code: {exit_code}, {cause}")


class HandleConsumedError(CliTimeoutError):
    """A run handle's exit status was already taken."""
    pass
