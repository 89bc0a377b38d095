"""
Scan Controller Module

Owns the single router session and runs sweeps on a background worker
thread.  A lock keeps ad-hoc commands (interface validation, status
snapshots) from interleaving with a running sweep.
"""

import logging
import threading
from typing import Dict, Optional

from .errors import ErrorReport
from .interfaces import InterfaceValidationResult, InterfaceValidator
from .models import ScanResult
from .observers import ScanObserver
from .pinger import PingProber
from .scanner import FrequencyScanner, ScanReport, ScanState
from .session import RouterSession
from .settings import ScanSettings

logger = logging.getLogger(__name__)


class ScanController:
    """Connection, sweep lifecycle and event fan-out for one router."""

    def __init__(
        self,
        session: Optional[RouterSession] = None,
        sink=None,
        observer: Optional[ScanObserver] = None,
        prober: Optional[PingProber] = None,
        validator: Optional[InterfaceValidator] = None,
    ):
        self.session = session or RouterSession()
        self.sink = sink
        self.observer = observer or ScanObserver()
        self.prober = prober or PingProber()
        self.validator = validator or InterfaceValidator()

        self._lock = threading.RLock()
        self._thread: Optional[threading.Thread] = None
        self._scanner: Optional[FrequencyScanner] = None
        self.last_report: Optional[ScanReport] = None

        self.session.add_command_listener(self._forward_trace)
        self.session.add_response_listener(self._forward_trace)

    def _forward_trace(self, line: str) -> None:
        self.observer.on_trace(line)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self.session.is_connected

    def connect(self, settings: ScanSettings) -> bool:
        """Open the session using the settings' router address and credentials."""
        if self.is_running():
            logger.warning("Connect refused: a scan is running")
            return False
        with self._lock:
            self.observer.on_status(f"Connecting to {settings.router_host}:{settings.ssh_port}")
            connected = self.session.connect(
                settings.router_host,
                settings.ssh_port,
                settings.username,
                settings.password,
            )
            self.observer.on_status("Connected" if connected else "Connection failed")
            return connected

    def disconnect(self) -> None:
        if self.is_running():
            self.stop_scan()
            self.wait()
        with self._lock:
            self.session.disconnect()
            self.observer.on_status("Disconnected")

    @property
    def last_failure(self) -> Optional[ErrorReport]:
        return self.session.last_failure

    # ------------------------------------------------------------------
    # Ad-hoc commands
    # ------------------------------------------------------------------

    def validate_interface(
        self, settings: ScanSettings, interface_name: Optional[str] = None
    ) -> InterfaceValidationResult:
        if self.is_running():
            return InterfaceValidationResult(False, "A scan is running.")
        with self._lock:
            return self.validator.validate(self.session, settings, interface_name)

    def get_current_status(self, settings: ScanSettings) -> Optional[ScanResult]:
        """Snapshot of the link outside a sweep. None while a sweep is running."""
        if self.is_running():
            return None
        with self._lock:
            scanner = FrequencyScanner(
                settings, self.session, observer=self.observer, prober=self.prober,
                validator=self.validator,
            )
            return scanner.get_current_status()

    # ------------------------------------------------------------------
    # Sweep lifecycle
    # ------------------------------------------------------------------

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def get_state(self) -> Dict:
        scanner = self._scanner
        state = scanner.state if scanner else ScanState.IDLE
        report = self.last_report
        return {
            "state": state.value,
            "running": self.is_running(),
            "connected": self.is_connected,
            "result_count": len(report.results) if report else 0,
            "error": report.error.to_dict() if report and report.error else None,
        }

    def _run(self, scanner: FrequencyScanner) -> None:
        with self._lock:
            try:
                self.last_report = scanner.start_scan()
            except Exception as e:
                logger.error(f"Scan worker crashed: {e}", exc_info=True)
                self.last_report = ScanReport(
                    ScanState.FAILED, error=ErrorReport.from_exception("Scan aborted", e)
                )
        logger.info(f"Scan finished in state {self.last_report.state.value}")

    def start_scan(self, settings: ScanSettings) -> bool:
        """
        Start a sweep in the background.

        Returns:
            False if a sweep is already running
        """
        if self.is_running():
            logger.warning("Scan already running")
            return False

        self.last_report = None
        self._scanner = FrequencyScanner(
            settings,
            self.session,
            sink=self.sink,
            observer=self.observer,
            prober=self.prober,
            validator=self.validator,
        )
        self._thread = threading.Thread(
            target=self._run, args=(self._scanner,), name="linktuner-scan", daemon=True
        )
        self._thread.start()
        return True

    def stop_scan(self) -> bool:
        if not self.is_running() or self._scanner is None:
            return False
        self._scanner.stop_scan()
        return True

    def wait(self, timeout: Optional[float] = None) -> Optional[ScanReport]:
        """Block until the current sweep ends (or ``timeout`` passes)."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return self.last_report
