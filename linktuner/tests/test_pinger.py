"""
Unit tests for the ping prober module.
"""

import subprocess
from unittest.mock import MagicMock

import pytest

from modules.pinger import PingProber
from modules.scanner import CancellationToken


def reply(ms):
    """A successful single-echo ping run."""
    stdout = f"64 bytes from 10.0.0.2: icmp_seq=1 ttl=64 time={ms} ms\n"
    return subprocess.CompletedProcess(args=["ping"], returncode=0, stdout=stdout, stderr="")


def no_reply():
    """A ping run that got no answer."""
    return subprocess.CompletedProcess(args=["ping"], returncode=1, stdout="", stderr="")


# ─── Fixtures ────────────────────────────────────────────────────────────────


@pytest.fixture
def sleep():
    return MagicMock()


def make_prober(outcomes, sleep):
    """Prober whose runner returns (or raises) the given outcomes in order."""
    runner = MagicMock(side_effect=outcomes)
    return PingProber(interval=0.2, runner=runner, sleep=sleep), runner


# ─── Probe Tests ─────────────────────────────────────────────────────────────


class TestPingProber:
    """Tests for PingProber.probe."""

    def test_all_replies(self, sleep):
        """Test statistics when every echo is answered."""
        prober, _ = make_prober([reply(10.0), reply(20.0), reply(30.0)], sleep)
        stats = prober.probe("10.0.0.2", count=3, timeout_ms=1000)

        assert stats.sent == 3
        assert stats.received == 3
        assert stats.lost == 0
        assert stats.loss_percent == 0
        assert stats.min_ms == 10.0
        assert stats.max_ms == 30.0
        assert stats.avg_ms == 20
        assert stats.success is True

    def test_failures_count_as_loss(self, sleep):
        """Test that non-zero exits and runner errors are lost packets."""
        outcomes = [
            reply(10.0),
            no_reply(),
            subprocess.TimeoutExpired(cmd="ping", timeout=3),
            reply(20.5),
        ]
        prober, _ = make_prober(outcomes, sleep)
        stats = prober.probe("10.0.0.2", count=4, timeout_ms=1000)

        assert stats.sent == 4
        assert stats.received == 2
        assert stats.lost == 2
        assert stats.loss_percent == 50.0
        assert stats.min_ms == 10.0
        assert stats.max_ms == 20.5
        assert stats.avg_ms == 15
        assert stats.success is True

    def test_unexpected_exception_is_loss(self, sleep):
        """Test that any exception from one echo is absorbed as a loss."""
        prober, _ = make_prober([RuntimeError("boom"), reply(5.0)], sleep)
        stats = prober.probe("10.0.0.2", count=2, timeout_ms=1000)

        assert stats.sent == 2
        assert stats.received == 1

    def test_unreachable(self, sleep):
        """Test that no replies leaves the RTT fields empty."""
        prober, _ = make_prober([no_reply(), OSError("no ping binary")], sleep)
        stats = prober.probe("10.0.0.2", count=2, timeout_ms=1000)

        assert stats.received == 0
        assert stats.loss_percent == 100.0
        assert stats.min_ms is None
        assert stats.max_ms is None
        assert stats.avg_ms is None
        assert stats.success is False

    def test_average_truncated(self, sleep):
        """Test that the average is truncated to whole milliseconds."""
        prober, _ = make_prober([reply(1.0), reply(2.9)], sleep)
        stats = prober.probe("10.0.0.2", count=2, timeout_ms=1000)
        assert stats.avg_ms == 1

    def test_reply_without_time(self, sleep):
        """Test that a reply without a parsable time still counts."""
        answered = subprocess.CompletedProcess(args=["ping"], returncode=0, stdout="1 received", stderr="")
        prober, _ = make_prober([answered], sleep)
        stats = prober.probe("10.0.0.2", count=1, timeout_ms=1000)

        assert stats.received == 1
        assert stats.avg_ms == 0

    def test_sleeps_between_echoes_only(self, sleep):
        """Test that there is no pause after the last echo."""
        prober, _ = make_prober([reply(1.0)] * 4, sleep)
        prober.probe("10.0.0.2", count=4, timeout_ms=1000)

        assert sleep.call_count == 3
        sleep.assert_called_with(0.2)

    def test_ping_command(self, sleep):
        """Test the command line handed to the runner."""
        prober, runner = make_prober([reply(1.0)], sleep)
        prober.probe("10.0.0.2", count=1, timeout_ms=2500)

        args, kwargs = runner.call_args
        assert args[0] == ["ping", "-c", "1", "-W", "3", "10.0.0.2"]
        assert kwargs["capture_output"] is True

    def test_cancellation(self, sleep):
        """Test that probing stops before the next echo once cancelled."""
        token = CancellationToken()

        def cancel_after_second(*args, **kwargs):
            if runner.call_count == 2:
                token.cancel()
            return reply(1.0)

        runner = MagicMock(side_effect=cancel_after_second)
        prober = PingProber(interval=0, runner=runner, sleep=sleep)
        stats = prober.probe("10.0.0.2", count=5, timeout_ms=1000, cancel_token=token)

        assert stats.sent == 2
        assert stats.received == 2
        assert runner.call_count == 2
