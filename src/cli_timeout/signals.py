"""Termination signal policy.

The default signal depends only on the platform and is computed once at
import; a configured signal always wins over it.
"""

from __future__ import annotations

import signal
import sys

__all__ = [
    "DEFAULT_SIGNAL",
    "default_signal_for",
    "parse_signal",
    "resolve_signal",
]


def default_signal_for(platform: str) -> signal.Signals:
    """Return the default termination signal for a ``sys.platform`` value.

    Windows has no POSIX signals, so an interrupt is used there.
    """
    if platform == "win32":
        return signal.SIGINT
    return signal.SIGTERM


DEFAULT_SIGNAL: signal.Signals = default_signal_for(sys.platform)


def resolve_signal(sig: signal.Signals | int | None) -> signal.Signals:
    """Return the configured signal, or the platform default."""
    if sig is None:
        return DEFAULT_SIGNAL
    return signal.Signals(sig)


def parse_signal(value: str) -> signal.Signals:
    """Parse a signal given by name or number.

    Accepts ``TERM``, ``SIGTERM``, ``term`` and ``15`` alike.

    Raises:
        ValueError: If the value names no signal on this platform
    """
    text = value.strip()
    if text.isdigit():
        try:
            return signal.Signals(int(text))
        except ValueError:
            raise ValueError(f"invalid signal: {value!r}") from None

    name = text.upper()
    if not name.startswith("SIG"):
        name = f"SIG{name}"
    try:
        return signal.Signals[name]
    except KeyError:
        raise ValueError(f"invalid signal: {value!r}") from None
