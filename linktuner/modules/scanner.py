"""
Frequency Scanner Module

Sweeps frequency x wireless protocol x channel width combinations on one
RouterOS wireless interface, waits for the link to settle after each
change, collects local, remote and ping telemetry, and restores the
router's original radio settings when the sweep ends.

States:

    IDLE -> VALIDATING_INTERFACE -> CAPTURING_BASELINE -> SWEEPING
         -> RESTORING -> DONE

CANCELLED and FAILED are terminal.  Cancellation is observed at each
combination boundary, at each one-second stabilization tick and before
each ping probe.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from config import (
    DEFAULT_COMMAND_TIMEOUT_MS,
    DEFAULT_PING_TIMEOUT_MS,
    TELEMETRY_COMMAND_TIMEOUT_MS,
)
from .errors import ErrorReport, SessionLostError
from .interfaces import InterfaceValidator
from .models import (
    STATUS_BASE,
    STATUS_STATUS,
    STATUS_SUCCESS,
    BaselineSettings,
    ScanResult,
)
from .observers import ScanObserver
from .pinger import PingProber
from .settings import ScanCombination, ScanSettings
from .telemetry import (
    has_failure_keyword,
    parse_channel_frequency,
    parse_numeric,
    parse_registration_table,
    parse_string,
)
from .templating import format_frequency, render_command

logger = logging.getLogger(__name__)

_STABILIZATION_TICK = 1.0  # seconds


class ScanState(str, Enum):
    IDLE = "idle"
    VALIDATING_INTERFACE = "validating_interface"
    CAPTURING_BASELINE = "capturing_baseline"
    SWEEPING = "sweeping"
    RESTORING = "restoring"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


class CancellationToken:
    """Cooperative stop signal shared by the scanner and the ping prober."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds. Returns True if cancelled meanwhile."""
        return self._event.wait(timeout)


@dataclass
class ScanContext:
    """State owned by one run of ``FrequencyScanner.start_scan``."""

    token: CancellationToken = field(default_factory=CancellationToken)
    baseline: Optional[BaselineSettings] = None
    results: List[ScanResult] = field(default_factory=list)
    available_interfaces: List[str] = field(default_factory=list)
    error: Optional[ErrorReport] = None


@dataclass
class ScanReport:
    """What a finished (or refused) sweep hands back to the caller."""

    state: ScanState
    results: List[ScanResult] = field(default_factory=list)
    error: Optional[ErrorReport] = None
    available_interfaces: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "state": self.state.value,
            "results": [r.to_dict() for r in self.results],
            "error": self.error.to_dict() if self.error else None,
            "available_interfaces": list(self.available_interfaces),
        }


class FrequencyScanner:
    """Runs one sweep over a connected RouterSession. Use a new instance per sweep."""

    def __init__(
        self,
        settings: ScanSettings,
        session,
        sink=None,
        observer: Optional[ScanObserver] = None,
        prober: Optional[PingProber] = None,
        validator: Optional[InterfaceValidator] = None,
    ):
        """
        Initialize the scanner.

        Args:
            settings: Sweep configuration
            session: Connected RouterSession (exclusively used during the sweep)
            sink: Object with ``start_new_scan()`` and ``save_result(result, settings)``
            observer: Receives progress, status and result events
            prober: Ping prober; a default one is created when omitted
            validator: Interface pre-check; a default one is created when omitted
        """
        self.settings = settings
        self.session = session
        self.sink = sink
        self.observer = observer or ScanObserver()
        self.prober = prober or PingProber()
        self.validator = validator or InterfaceValidator()

        self.state = ScanState.IDLE
        self._token = CancellationToken()
        self._context: Optional[ScanContext] = None

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _set_state(self, state: ScanState) -> None:
        logger.debug(f"Scanner state {self.state.value} -> {state.value}")
        self.state = state

    def _status(self, message: str) -> None:
        logger.info(message)
        try:
            self.observer.on_status(message)
        except Exception as e:
            logger.error(f"Status observer failed: {e}")

    def _progress(self, percent: int) -> None:
        try:
            self.observer.on_progress(percent)
        except Exception as e:
            logger.error(f"Progress observer failed: {e}")

    def _emit(self, ctx: ScanContext, result: ScanResult) -> None:
        """Record a result, persist it and notify the observer, in that order."""
        ctx.results.append(result)
        if self.sink is not None:
            try:
                self.sink.save_result(result, self.settings)
            except Exception as e:
                logger.error(f"Failed to persist scan result: {e}", exc_info=True)
        try:
            self.observer.on_result(result)
        except Exception as e:
            logger.error(f"Result observer failed: {e}")

    # ------------------------------------------------------------------
    # Command helpers
    # ------------------------------------------------------------------

    def _send(self, command: str, timeout_ms: int = DEFAULT_COMMAND_TIMEOUT_MS) -> str:
        """Send a command; raise SessionLostError if the session cannot be restored."""
        response = self.session.send_command(command, timeout_ms)
        if self.session.reconnect_failed:
            report = self.session.last_failure or ErrorReport(
                context="Session lost",
                message="Could not re-establish the SSH session",
                kind="reconnect",
            )
            raise SessionLostError(report)
        return response

    def _render(self, template: str, **values) -> str:
        return render_command(template, self.settings.interface_name, **values)

    # ------------------------------------------------------------------
    # Telemetry collection
    # ------------------------------------------------------------------

    def _read_interface_info(self) -> str:
        commands = self.settings.commands
        info = self._send(self._render(commands.get_interface_info), TELEMETRY_COMMAND_TIMEOUT_MS)
        if not info.strip():
            self._status("No response to interface info command, trying fallback")
            info = self._send(
                self._render(commands.get_interface_info_fallback), TELEMETRY_COMMAND_TIMEOUT_MS
            )
        return info

    def _collect(
        self,
        result: ScanResult,
        ctx: Optional[ScanContext] = None,
        read_frequency: bool = False,
    ) -> ScanResult:
        """
        Fill ``result`` from interface info, registration table, monitor and ping.

        Interface info sets the local fields.  The registration table sets
        every remote field and the local CCQ when still unknown.  Monitor
        values for noise floor, CCQ, protocol, channel width, band and
        rates override what came before.
        """
        commands = self.settings.commands

        info = self._read_interface_info()
        if read_frequency and result.frequency is None:
            result.frequency = parse_numeric(info, "frequency")

        result.signal_strength = parse_numeric(info, "signal-strength")
        result.noise_floor = parse_numeric(info, "noise-floor")
        result.antenna_power = parse_numeric(info, "tx-power")
        result.tx_rate = parse_numeric(info, "tx-rate")
        result.rx_rate = parse_numeric(info, "rx-rate")
        result.band = parse_string(info, "band") or result.band
        result.channel_width = parse_string(info, "channel-width") or result.channel_width
        result.wireless_protocol = parse_string(info, "wireless-protocol") or result.wireless_protocol

        registration = self._send(
            self._render(commands.get_registration_table), TELEMETRY_COMMAND_TIMEOUT_MS
        )
        if not registration.strip():
            self._status("Registration table is empty; remote antenna may not be connected")
        else:
            remote = parse_registration_table(registration)
            if remote is not None:
                result.apply_remote(remote)
                self._status(f"Remote antenna: {remote.summary()}")
                if result.ccq is None:
                    result.ccq = remote.tx_ccq
            else:
                self._status("Could not parse remote antenna info from registration table")

        monitor = self._send(self._render(commands.monitor_interface), TELEMETRY_COMMAND_TIMEOUT_MS)
        if result.signal_strength is None:
            result.signal_strength = parse_numeric(monitor, "signal-strength")
        noise_floor = parse_numeric(monitor, "noise-floor")
        if noise_floor is not None:
            result.noise_floor = noise_floor
        ccq = parse_numeric(monitor, "overall-tx-ccq")
        if ccq is not None:
            result.ccq = ccq
        protocol = parse_string(monitor, "wireless-protocol")
        if protocol:
            result.wireless_protocol = protocol
        width = parse_string(monitor, "channel-width")
        if width:
            result.channel_width = width
        band = parse_string(monitor, "band")
        if band:
            result.band = band
        if result.frequency is None:
            result.frequency = parse_channel_frequency(parse_string(monitor, "channel"))
        tx_rate = parse_numeric(monitor, "tx-rate")
        if tx_rate is not None:
            result.tx_rate = tx_rate
        rx_rate = parse_numeric(monitor, "rx-rate")
        if rx_rate is not None:
            result.rx_rate = rx_rate

        result.download_speed = result.rx_rate
        result.upload_speed = result.tx_rate

        if self.settings.ping_target:
            stats = self.prober.probe(
                self.settings.ping_target,
                count=self.settings.ping_count,
                timeout_ms=DEFAULT_PING_TIMEOUT_MS,
                cancel_token=ctx.token if ctx else None,
            )
            result.apply_ping(stats)

        return result

    def _capture_baseline(self, ctx: ScanContext) -> ScanResult:
        self._status("Reading current interface status")
        result = ScanResult(status=STATUS_BASE)
        try:
            self._collect(result, ctx, read_frequency=True)
        except SessionLostError:
            raise
        except Exception as e:
            logger.error(f"Error capturing baseline: {e}", exc_info=True)
            result.error_message = f"Error reading current status: {e}"
        self._status(f"Current status captured - frequency: {result.frequency} MHz")
        return result

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def _stabilize(self, ctx: ScanContext) -> bool:
        """
        Count down the stabilization wait one second at a time.

        Returns:
            False if the sweep was cancelled during the wait
        """
        total = int(self.settings.stabilization_minutes * 60)
        for remaining in range(total, 0, -1):
            if ctx.token.cancelled:
                return False
            minutes, seconds = divmod(remaining, 60)
            if minutes:
                self._status(f"Stabilizing: {minutes} min {seconds} s remaining")
            else:
                self._status(f"Stabilizing: {seconds} s remaining")
            if ctx.token.wait(_STABILIZATION_TICK):
                return False
        return not ctx.token.cancelled

    def _scan_combination(
        self, ctx: ScanContext, combination: ScanCombination
    ) -> Optional[ScanResult]:
        """
        Apply one combination and collect its telemetry.

        Returns:
            The result, or None if cancelled before collection began
        """
        frequency, protocol, width = combination
        commands = self.settings.commands
        result = ScanResult(
            frequency=float(frequency),
            wireless_protocol=protocol,
            channel_width=width,
        )

        label = f"{format_frequency(frequency)} MHz"
        if protocol:
            label += f", protocol {protocol}"
        if width:
            label += f", channel width {width}"
        self._status(f"Setting {label}")

        try:
            response = self._send(self._render(commands.set_frequency, frequency=frequency))
            if has_failure_keyword(response, self.settings.failure_keywords):
                logger.warning(f"Router rejected frequency {frequency}: {response}")
                result.mark_error(response)
                return result

            if protocol:
                self._send(self._render(commands.set_wireless_protocol, protocol=protocol))
            if width:
                self._send(self._render(commands.set_channel_width, channel_width=width))

            if not self._stabilize(ctx):
                self._status("Stabilization wait cancelled")
                return None

            self._status("Collecting statistics")
            self._collect(result, ctx)
            result.status = STATUS_SUCCESS
            self._status(
                f"Done {label}: SNR {result.signal_to_noise_ratio} dB"
            )
        except SessionLostError:
            raise
        except Exception as e:
            logger.error(f"Error scanning {label}: {e}", exc_info=True)
            result.mark_error(str(e))

        return result

    def _sweep(self, ctx: ScanContext) -> None:
        combinations = self.settings.combinations()
        total = len(combinations)
        self._status(f"Starting sweep of {total} combinations")

        for index, combination in enumerate(combinations, start=1):
            if ctx.token.cancelled:
                self._status("Scan stopped")
                return

            result = self._scan_combination(ctx, combination)
            if result is None:
                self._status("Scan stopped")
                return

            self._emit(ctx, result)
            self._progress(int(index * 100 / total))

        self._status(f"Sweep complete: {total} combinations tested")

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def _restore(self, baseline: BaselineSettings) -> None:
        """Re-apply the baseline radio settings. Each failure is logged and skipped."""
        if baseline.is_empty():
            logger.info("No baseline settings recorded, nothing to restore")
            return

        commands = self.settings.commands
        steps = []
        if baseline.frequency is not None:
            steps.append(("frequency", self._render(commands.set_frequency, frequency=baseline.frequency)))
        if baseline.wireless_protocol is not None:
            steps.append((
                "wireless protocol",
                self._render(commands.set_wireless_protocol, protocol=baseline.wireless_protocol),
            ))
        if baseline.channel_width is not None:
            steps.append((
                "channel width",
                self._render(commands.set_channel_width, channel_width=baseline.channel_width),
            ))

        self._status("Restoring original radio settings")
        for label, command in steps:
            try:
                response = self.session.send_command(command, DEFAULT_COMMAND_TIMEOUT_MS)
                if self.session.reconnect_failed:
                    logger.error(f"Could not restore {label}: session unavailable")
                elif has_failure_keyword(response, self.settings.failure_keywords):
                    logger.error(f"Router rejected restore of {label}: {response}")
                else:
                    logger.info(f"Restored {label}")
            except Exception as e:
                logger.error(f"Error restoring {label}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start_scan(self) -> ScanReport:
        """
        Run a full sweep: validate, capture baseline, sweep, restore.

        Returns:
            ScanReport with the final state and every emitted result
        """
        ctx = ScanContext(token=self._token)
        self._context = ctx

        errors = self.settings.validate()
        if errors:
            self._set_state(ScanState.FAILED)
            return ScanReport(ScanState.FAILED, error=ErrorReport(
                context="Invalid scan settings", message="; ".join(errors), kind="settings",
            ))

        if not self.session.is_connected:
            self._set_state(ScanState.FAILED)
            return ScanReport(ScanState.FAILED, error=ErrorReport(
                context="Cannot start scan", message="Not connected to the router", kind="connection",
            ))

        self._set_state(ScanState.VALIDATING_INTERFACE)
        self._status(f"Validating interface {self.settings.interface_name}")
        validation = self.validator.validate(
            self.session, self.settings, self.settings.interface_name
        )
        if not validation.is_valid:
            self._status(validation.error_message or "Interface validation failed")
            self._set_state(ScanState.IDLE)
            return ScanReport(
                ScanState.IDLE,
                error=ErrorReport(
                    context="Interface validation failed",
                    message=validation.error_message or "",
                    kind="validation",
                ),
                available_interfaces=list(validation.available_interfaces),
            )
        ctx.available_interfaces = list(validation.available_interfaces)

        try:
            self._set_state(ScanState.CAPTURING_BASELINE)
            if self.sink is not None:
                try:
                    self.sink.start_new_scan()
                except Exception as e:
                    logger.error(f"Failed to start new scan in sink: {e}", exc_info=True)

            base = self._capture_baseline(ctx)
            self._emit(ctx, base)
            ctx.baseline = BaselineSettings.from_result(base)

            self._set_state(ScanState.SWEEPING)
            self._sweep(ctx)
        except SessionLostError as e:
            logger.error(f"Sweep aborted: {e}")
            ctx.error = e.report
        except Exception as e:
            logger.error(f"Sweep aborted by unexpected error: {e}", exc_info=True)
            ctx.error = ErrorReport.from_exception("Scan aborted", e)
        finally:
            if ctx.baseline is not None:
                self._set_state(ScanState.RESTORING)
                self._restore(ctx.baseline)

        if ctx.error is not None:
            final = ScanState.FAILED
            self._status(f"Scan failed: {ctx.error}")
        elif ctx.token.cancelled:
            final = ScanState.CANCELLED
        else:
            final = ScanState.DONE
            self._progress(100)
        self._set_state(final)

        return ScanReport(
            final,
            results=list(ctx.results),
            error=ctx.error,
            available_interfaces=ctx.available_interfaces,
        )

    def stop_scan(self) -> None:
        """Request cancellation of the running sweep."""
        logger.info("Scan stop requested")
        self._token.cancel()

    def get_current_status(self) -> ScanResult:
        """Ad-hoc snapshot of the link, tagged ``status`` and not persisted."""
        result = ScanResult(status=STATUS_STATUS)
        try:
            self._collect(result, read_frequency=True)
        except SessionLostError as e:
            result.error_message = str(e.report)
        return result
