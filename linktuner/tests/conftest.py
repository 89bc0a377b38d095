"""
Shared fixtures: a scripted router session and canned RouterOS output.
"""

from unittest.mock import MagicMock

import pytest

from modules.errors import ErrorReport
from modules.models import PingStats
from modules.pinger import PingProber
from modules.settings import CommandSet, ScanSettings
from modules.templating import render_command


INTERFACE_LIST = (
    "Flags: X - disabled, R - running\n"
    ' 0  R name="wlan1" mtu=1500 mac-address=4C:5E:0C:7F:D4:A0\n'
    ' 1    name="wlan2" mtu=1500 mac-address=4C:5E:0C:7F:D4:A1'
)

INTERFACE_INFO = (
    ' 0  R name="wlan1" mode=bridge band=5ghz-a/n channel-width=20mhz frequency=5180\n'
    "      wireless-protocol=nv2 tx-power=17 signal-strength=-60"
)

REGISTRATION_TABLE = (
    ' 0 interface=wlan1 radio-name="NTK O" mac-address=4C:5E:0C:7F:D4:B1 ap=no\n'
    "   signal-strength=-64dBm@6Mbps tx-ccq=80% packets=23334,25484"
)

MONITOR = (
    "           status: connected-to-ess\n"
    "             band: 5ghz-a/n\n"
    "          channel: 5180/20/an\n"
    "wireless-protocol: nv2\n"
    "      noise-floor: -105dBm\n"
    "   overall-tx-ccq: 90%\n"
    "          tx-rate: 54Mbps\n"
    "          rx-rate: 48Mbps"
)


class RouterCommands:
    """Rendered command lines for the default templates on one interface."""

    def __init__(self, interface="wlan1", commands=None):
        self.interface = interface
        self.templates = commands or CommandSet()
        self.validate = render_command(self.templates.validate_interface, interface)
        self.info = render_command(self.templates.get_interface_info, interface)
        self.fallback = render_command(self.templates.get_interface_info_fallback, interface)
        self.registration = render_command(self.templates.get_registration_table, interface)
        self.monitor = render_command(self.templates.monitor_interface, interface)

    def set_frequency(self, frequency):
        return render_command(self.templates.set_frequency, self.interface, frequency=frequency)

    def set_protocol(self, protocol):
        return render_command(self.templates.set_wireless_protocol, self.interface, protocol=protocol)

    def set_width(self, width):
        return render_command(self.templates.set_channel_width, self.interface, channel_width=width)


class FakeRouter:
    """
    Stand-in for RouterSession.

    Answers each command from ``responses`` (empty string when unscripted)
    and records every command sent.  ``lose_session_on`` names a command
    after which the session counts as lost for good; ``gates`` maps a
    command to an Event that must be set before it is answered.
    """

    def __init__(self, responses=None, connected=True):
        self.responses = dict(responses or {})
        self.commands = []
        self.is_connected = connected
        self.reconnect_failed = False
        self.last_failure = None
        self.lose_session_on = None
        self.gates = {}
        self.connect_calls = []
        self._command_listeners = []
        self._response_listeners = []
        self._failure_listeners = []

    def add_command_listener(self, callback):
        self._command_listeners.append(callback)

    def add_response_listener(self, callback):
        self._response_listeners.append(callback)

    def add_failure_listener(self, callback):
        self._failure_listeners.append(callback)

    def connect(self, host, port, username, password, timeout=10):
        self.connect_calls.append((host, port, username, password))
        self.is_connected = True
        self.reconnect_failed = False
        return True

    def disconnect(self):
        self.is_connected = False

    def send_command(self, command, timeout_ms=5000):
        self.commands.append(command)
        for callback in self._command_listeners:
            callback(f"[SENT] {command}")

        gate = self.gates.get(command)
        if gate is not None:
            gate.wait(5)

        if command == self.lose_session_on:
            self.reconnect_failed = True
            self.last_failure = ErrorReport(
                context="Reconnect failed",
                message="Could not re-establish SSH session to 192.168.88.1:22",
                kind="reconnect",
            )
            for callback in self._failure_listeners:
                callback(self.last_failure)
        if self.reconnect_failed:
            return ""

        response = self.responses.get(command, "")
        for callback in self._response_listeners:
            callback(f"[RECEIVED] {response}")
        return response


# ─── Fixtures ────────────────────────────────────────────────────────────────


@pytest.fixture
def cmd():
    """Rendered default commands for wlan1."""
    return RouterCommands()


@pytest.fixture
def router(cmd):
    """Connected fake router answering with a healthy 5 GHz link."""
    return FakeRouter({
        cmd.validate: INTERFACE_LIST,
        cmd.info: INTERFACE_INFO,
        cmd.registration: REGISTRATION_TABLE,
        cmd.monitor: MONITOR,
    })


@pytest.fixture
def scan_settings():
    """Two-frequency sweep without stabilization wait."""
    return ScanSettings(
        password="secret",
        start_frequency=5180,
        end_frequency=5190,
        frequency_step=10,
        stabilization_minutes=0,
        ping_target="10.0.0.2",
        ping_count=2,
    )


@pytest.fixture
def prober():
    """Ping prober that always reports two quick replies."""
    mock = MagicMock(spec=PingProber)
    mock.probe.return_value = PingStats(
        target="10.0.0.2", sent=2, received=2, min_ms=1.0, max_ms=3.0, avg_ms=2
    )
    return mock
