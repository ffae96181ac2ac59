"""Signal policy tests."""

from __future__ import annotations

import signal
import sys

import pytest

from cli_timeout.signals import (
    DEFAULT_SIGNAL,
    default_signal_for,
    parse_signal,
    resolve_signal,
)

IS_WINDOWS = sys.platform == "win32"


class TestDefaultSignal:
    """Platform default."""

    def test_windows_uses_interrupt(self):
        assert default_signal_for("win32") is signal.SIGINT

    @pytest.mark.parametrize("platform", ["linux", "darwin", "freebsd13"])
    def test_posix_uses_terminate(self, platform: str):
        assert default_signal_for(platform) is signal.SIGTERM

    def test_default_matches_current_platform(self):
        assert DEFAULT_SIGNAL is default_signal_for(sys.platform)


class TestResolveSignal:
    """Configured signal vs. default."""

    def test_none_resolves_to_default(self):
        assert resolve_signal(None) is DEFAULT_SIGNAL

    def test_configured_signal_wins(self):
        assert resolve_signal(signal.SIGINT) is signal.SIGINT

    def test_int_is_converted(self):
        assert resolve_signal(int(signal.SIGINT)) is signal.SIGINT


@pytest.mark.skipif(IS_WINDOWS, reason="POSIX signal names")
class TestParseSignal:
    """Signal names and numbers."""

    @pytest.mark.parametrize("value", ["TERM", "SIGTERM", "term", "SigTerm", " TERM ", "15"])
    def test_terminate_spellings(self, value: str):
        assert parse_signal(value) is signal.SIGTERM

    def test_kill(self):
        assert parse_signal("KILL") is signal.SIGKILL
        assert parse_signal("9") is signal.SIGKILL

    @pytest.mark.parametrize("value", ["NOPE", "SIGNOPE", "", "999", "-1"])
    def test_invalid(self, value: str):
        with pytest.raises(ValueError):
            parse_signal(value)
