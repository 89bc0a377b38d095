"""
Unit tests for the application entry point.
"""

import logging
from concurrent.futures import Future
from unittest.mock import MagicMock, patch

import pytest

from main import LinkTuner, _log_broadcast_failure
from modules.observers import EVENT_STATUS


# ─── Fixtures ────────────────────────────────────────────────────────────────


@pytest.fixture
def tuner():
    with patch("main.init_database", return_value=MagicMock()):
        app = LinkTuner(host="127.0.0.1", port=5050)
    loop = MagicMock()
    loop.is_closed.return_value = False
    app._event_loop = loop
    return app


def close_and_return(future):
    """run_coroutine_threadsafe stand-in that discards the coroutine."""
    def run(coro, loop):
        coro.close()
        return future
    return run


# ─── Event Delivery ──────────────────────────────────────────────────────────


class TestBroadcastFailures:
    """Tests for reporting failed WebSocket broadcasts."""

    def test_exception_logged(self, caplog):
        """Test that a broadcast that raised is logged as a warning."""
        future = Future()
        future.set_exception(RuntimeError("socket gone"))

        with caplog.at_level(logging.WARNING, logger="main"):
            _log_broadcast_failure(future)

        assert "Event broadcast failed: socket gone" in caplog.text

    def test_success_and_cancel_quiet(self, caplog):
        """Test that completed and cancelled broadcasts log nothing."""
        done = Future()
        done.set_result(1)
        cancelled = Future()
        cancelled.cancel()

        with caplog.at_level(logging.WARNING, logger="main"):
            _log_broadcast_failure(done)
            _log_broadcast_failure(cancelled)

        assert caplog.text == ""

    def test_event_future_watched(self, tuner):
        """Test that each scheduled broadcast gets the failure callback."""
        future = MagicMock()
        with patch("main.asyncio.run_coroutine_threadsafe", side_effect=close_and_return(future)):
            tuner._on_scan_event(EVENT_STATUS, "Restoring original radio settings")

        future.add_done_callback.assert_called_once_with(_log_broadcast_failure)

    def test_no_loop_no_broadcast(self, tuner):
        """Test that events before startup are dropped."""
        tuner._event_loop = None
        with patch("main.asyncio.run_coroutine_threadsafe") as run:
            tuner._on_scan_event(EVENT_STATUS, "idle")

        run.assert_not_called()
