"""
Unit tests for the scan controller module.
"""

import threading
from unittest.mock import MagicMock

import pytest

from modules.controller import ScanController
from modules.observers import ScanObserver
from modules.scanner import ScanState


# ─── Fixtures ────────────────────────────────────────────────────────────────


@pytest.fixture
def observer():
    return MagicMock(spec=ScanObserver)


@pytest.fixture
def controller(router, observer, prober):
    return ScanController(session=router, sink=MagicMock(), observer=observer, prober=prober)


@pytest.fixture
def gate(router, cmd):
    """Holds the sweep at its first frequency change until set."""
    event = threading.Event()
    router.gates[cmd.set_frequency(5180)] = event
    yield event
    event.set()


# ─── Connection ──────────────────────────────────────────────────────────────


class TestConnection:
    """Tests for connecting and disconnecting."""

    def test_connect_uses_settings(self, controller, router, scan_settings):
        """Test that the session is opened with the settings' credentials."""
        router.is_connected = False

        assert controller.connect(scan_settings) is True
        assert router.connect_calls == [("192.168.88.1", 22, "admin", "secret")]
        assert controller.is_connected

    def test_disconnect(self, controller, router, observer):
        """Test that disconnect closes the session."""
        controller.disconnect()

        assert not router.is_connected
        observer.on_status.assert_called_with("Disconnected")

    def test_trace_forwarded(self, controller, router, observer):
        """Test that session trace lines reach the observer."""
        router.responses["/system identity print"] = "name: tower"
        router.send_command("/system identity print")

        traces = [c[0][0] for c in observer.on_trace.call_args_list]
        assert traces == ["[SENT] /system identity print", "[RECEIVED] name: tower"]


# ─── Sweep Lifecycle ─────────────────────────────────────────────────────────


class TestSweepLifecycle:
    """Tests for running sweeps in the background."""

    def test_sweep_completes(self, controller, scan_settings):
        """Test a background sweep from start to report."""
        assert controller.start_scan(scan_settings) is True
        report = controller.wait(5)

        assert report.state == ScanState.DONE
        assert len(report.results) == 3
        assert not controller.is_running()

        state = controller.get_state()
        assert state["state"] == "done"
        assert state["running"] is False
        assert state["result_count"] == 3
        assert state["error"] is None

    def test_single_sweep_at_a_time(self, controller, scan_settings, gate):
        """Test that a second start is refused while a sweep runs."""
        assert controller.start_scan(scan_settings)
        assert controller.is_running()
        assert controller.start_scan(scan_settings) is False

        gate.set()
        assert controller.wait(5).state == ScanState.DONE

    def test_ad_hoc_commands_refused_while_running(self, controller, scan_settings, gate):
        """Test that validation, snapshots and reconnects wait for the sweep."""
        controller.start_scan(scan_settings)

        validation = controller.validate_interface(scan_settings)
        assert not validation.is_valid
        assert validation.error_message == "A scan is running."
        assert controller.get_current_status(scan_settings) is None
        assert controller.connect(scan_settings) is False

        gate.set()
        controller.wait(5)

    def test_stop(self, controller, scan_settings, gate):
        """Test that stop_scan cancels the running sweep."""
        controller.start_scan(scan_settings)
        assert controller.stop_scan() is True

        gate.set()
        report = controller.wait(5)

        assert report.state == ScanState.CANCELLED
        assert [r.status for r in report.results] == ["base"]

    def test_stop_when_idle(self, controller):
        """Test that stopping without a sweep does nothing."""
        assert controller.stop_scan() is False

    def test_failed_start_reported(self, controller, scan_settings):
        """Test that an invalid interface is reported in the state."""
        controller.start_scan(scan_settings.with_overrides(interface_name="wlan9"))
        report = controller.wait(5)

        assert report.state == ScanState.IDLE
        assert report.available_interfaces == ["wlan1", "wlan2"]
        assert controller.get_state()["error"]["kind"] == "validation"


# ─── Ad-hoc Commands ─────────────────────────────────────────────────────────


class TestAdHoc:
    """Tests for commands issued outside a sweep."""

    def test_validate_interface(self, controller, scan_settings):
        """Test interface validation through the controller."""
        assert controller.validate_interface(scan_settings).is_valid
        assert not controller.validate_interface(scan_settings, "wlan9").is_valid

    def test_current_status(self, controller, scan_settings, router):
        """Test a status snapshot through the controller."""
        result = controller.get_current_status(scan_settings)

        assert result.status == "status"
        assert result.frequency == 5180.0

    def test_initial_state(self, controller):
        """Test the state before any sweep."""
        state = controller.get_state()

        assert state["state"] == "idle"
        assert state["running"] is False
        assert state["connected"] is True
        assert state["result_count"] == 0
