"""
LinkTuner Modules Package

Router session, telemetry parsing, ping probing, sweep orchestration and
result persistence.
"""

from .errors import ErrorReport, LinkTunerError, SessionLostError, SettingsError
from .models import (
    RemoteAntennaInfo, PingStats, BaselineSettings, ScanResult,
    STATUS_BASE, STATUS_SUCCESS, STATUS_ERROR, STATUS_STATUS,
)
from .settings import (
    ScanSettings, CommandSet, parse_list,
    load_settings, save_settings,
)
from .templating import render_command, format_frequency
from .telemetry import (
    parse_numeric, parse_string, parse_key_value_line,
    parse_counter_pair, parse_flag, parse_registration_table,
    parse_interface_names, has_failure_keyword,
)
from .session import RouterSession, clean_output
from .pinger import PingProber
from .interfaces import InterfaceValidator, InterfaceValidationResult
from .observers import ScanObserver, LoggingObserver, CallbackObserver, MultiObserver
from .scanner import (
    FrequencyScanner, ScanState, ScanReport, ScanContext, CancellationToken,
)
from .database import init_database, DatabaseManager, ScanRun, ScanRecord
from .controller import ScanController

__all__ = [
    "ErrorReport",
    "LinkTunerError",
    "SessionLostError",
    "SettingsError",
    "RemoteAntennaInfo",
    "PingStats",
    "BaselineSettings",
    "ScanResult",
    "STATUS_BASE",
    "STATUS_SUCCESS",
    "STATUS_ERROR",
    "STATUS_STATUS",
    "ScanSettings",
    "CommandSet",
    "parse_list",
    "load_settings",
    "save_settings",
    "render_command",
    "format_frequency",
    "parse_numeric",
    "parse_string",
    "parse_key_value_line",
    "parse_counter_pair",
    "parse_flag",
    "parse_registration_table",
    "parse_interface_names",
    "has_failure_keyword",
    "RouterSession",
    "clean_output",
    "PingProber",
    "InterfaceValidator",
    "InterfaceValidationResult",
    "ScanObserver",
    "LoggingObserver",
    "CallbackObserver",
    "MultiObserver",
    "FrequencyScanner",
    "ScanState",
    "ScanReport",
    "ScanContext",
    "CancellationToken",
    "init_database",
    "DatabaseManager",
    "ScanRun",
    "ScanRecord",
    "ScanController",
]
