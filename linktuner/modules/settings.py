"""
Scan Settings

Immutable per-run configuration for a frequency sweep, its validation
rules and JSON preset helpers.
"""

import ipaddress
import json
import logging
from dataclasses import asdict, dataclass, field, replace
from itertools import product
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from config import (
    DEFAULT_CHANNEL_WIDTHS,
    DEFAULT_COMMANDS,
    DEFAULT_END_FREQUENCY,
    DEFAULT_FREQUENCY_STEP,
    DEFAULT_INTERFACE,
    DEFAULT_PING_COUNT,
    DEFAULT_PING_TARGET,
    DEFAULT_ROUTER_HOST,
    DEFAULT_SSH_PORT,
    DEFAULT_STABILIZATION_MINUTES,
    DEFAULT_START_FREQUENCY,
    DEFAULT_USERNAME,
    DEFAULT_WIRELESS_PROTOCOLS,
    FAILURE_KEYWORDS,
    MAX_FREQUENCY,
    MAX_STABILIZATION_MINUTES,
    MIN_FREQUENCY,
)
from .errors import SettingsError

logger = logging.getLogger(__name__)

ScanCombination = Tuple[int, Optional[str], Optional[str]]


def parse_list(value: Union[str, Iterable[str], None]) -> Tuple[str, ...]:
    """Split a comma/newline separated string (or iterable) into clean items."""
    if value is None:
        return ()
    if isinstance(value, str):
        value = value.replace("\r", "\n").replace(",", "\n").split("\n")
    return tuple(item.strip() for item in value if item and item.strip())


@dataclass(frozen=True)
class CommandSet:
    """RouterOS command templates used by a sweep."""

    set_frequency: str = DEFAULT_COMMANDS["set_frequency"]
    set_wireless_protocol: str = DEFAULT_COMMANDS["set_wireless_protocol"]
    set_channel_width: str = DEFAULT_COMMANDS["set_channel_width"]
    get_interface_info: str = DEFAULT_COMMANDS["get_interface_info"]
    get_interface_info_fallback: str = DEFAULT_COMMANDS["get_interface_info_fallback"]
    get_registration_table: str = DEFAULT_COMMANDS["get_registration_table"]
    monitor_interface: str = DEFAULT_COMMANDS["monitor_interface"]
    validate_interface: str = DEFAULT_COMMANDS["validate_interface"]

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "CommandSet":
        data = data or {}
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__ and v}
        return cls(**known)


@dataclass(frozen=True)
class ScanSettings:
    """Everything one sweep needs to know."""

    router_host: str = DEFAULT_ROUTER_HOST
    ssh_port: int = DEFAULT_SSH_PORT
    username: str = DEFAULT_USERNAME
    password: str = ""
    interface_name: str = DEFAULT_INTERFACE
    start_frequency: int = DEFAULT_START_FREQUENCY
    end_frequency: int = DEFAULT_END_FREQUENCY
    frequency_step: int = DEFAULT_FREQUENCY_STEP
    wireless_protocols: Tuple[str, ...] = ()
    channel_widths: Tuple[str, ...] = ()
    stabilization_minutes: float = DEFAULT_STABILIZATION_MINUTES
    ping_target: Optional[str] = DEFAULT_PING_TARGET
    ping_count: int = DEFAULT_PING_COUNT
    commands: CommandSet = field(default_factory=CommandSet)
    failure_keywords: Tuple[str, ...] = field(default_factory=lambda: tuple(FAILURE_KEYWORDS))

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def defaults(cls) -> "ScanSettings":
        """Factory defaults, including the suggested candidate lists."""
        return cls(
            wireless_protocols=tuple(DEFAULT_WIRELESS_PROTOCOLS),
            channel_widths=tuple(DEFAULT_CHANNEL_WIDTHS),
        )

    @classmethod
    def from_dict(cls, data: Dict) -> "ScanSettings":
        """
        Build settings from a plain dictionary (API body or JSON preset).

        Candidate lists may be given as lists or as comma/newline
        separated strings.  Unknown keys are ignored.
        """
        kwargs = {}
        for name in cls.__dataclass_fields__:
            if name in data and data[name] is not None:
                kwargs[name] = data[name]

        for list_key in ("wireless_protocols", "channel_widths", "failure_keywords"):
            if list_key in kwargs:
                kwargs[list_key] = parse_list(kwargs[list_key])

        for int_key in ("ssh_port", "start_frequency", "end_frequency",
                        "frequency_step", "ping_count"):
            if int_key in kwargs:
                try:
                    kwargs[int_key] = int(kwargs[int_key])
                except (TypeError, ValueError):
                    raise SettingsError([f"{int_key} must be an integer"])

        if "stabilization_minutes" in kwargs:
            try:
                kwargs["stabilization_minutes"] = float(kwargs["stabilization_minutes"])
            except (TypeError, ValueError):
                raise SettingsError(["stabilization_minutes must be a number"])

        kwargs["commands"] = CommandSet.from_dict(data.get("commands"))
        return cls(**kwargs)

    def with_overrides(self, **changes) -> "ScanSettings":
        return replace(self, **changes)

    def to_dict(self, include_password: bool = True) -> Dict:
        data = asdict(self)
        data["wireless_protocols"] = list(self.wireless_protocols)
        data["channel_widths"] = list(self.channel_widths)
        data["failure_keywords"] = list(self.failure_keywords)
        if not include_password:
            data["password"] = "*" * len(self.password) if self.password else ""
        return data

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> List[str]:
        """
        Check the settings for consistency.

        Returns:
            List of human-readable problems; empty when the settings are usable.
        """
        errors: List[str] = []

        if not self.router_host or not self.router_host.strip():
            errors.append("Router IP address must not be empty.")
        else:
            try:
                ipaddress.ip_address(self.router_host.strip())
            except ValueError:
                errors.append("Router IP address is not valid.")

        if not 1 <= self.ssh_port <= 65535:
            errors.append("SSH port must be between 1 and 65535.")

        if not self.username or not self.username.strip():
            errors.append("Username must not be empty.")

        if not self.password:
            errors.append("Password must not be empty.")

        if not MIN_FREQUENCY <= self.start_frequency <= MAX_FREQUENCY:
            errors.append(f"Start frequency must be between {MIN_FREQUENCY} and {MAX_FREQUENCY} MHz.")

        if not MIN_FREQUENCY <= self.end_frequency <= MAX_FREQUENCY:
            errors.append(f"End frequency must be between {MIN_FREQUENCY} and {MAX_FREQUENCY} MHz.")

        if self.start_frequency >= self.end_frequency:
            errors.append("Start frequency must be lower than end frequency.")

        if self.frequency_step <= 0:
            errors.append("Frequency step must be greater than zero.")
        elif self.frequency_step > self.end_frequency - self.start_frequency:
            errors.append("Frequency step must not exceed the frequency range.")

        if not 0 <= self.stabilization_minutes <= MAX_STABILIZATION_MINUTES:
            errors.append(f"Stabilization time must be between 0 and {MAX_STABILIZATION_MINUTES} minutes.")

        if not self.interface_name or not self.interface_name.strip():
            errors.append("Interface name must not be empty.")

        if self.ping_count < 1:
            errors.append("Ping count must be at least 1.")

        if self.ping_target:
            try:
                ipaddress.ip_address(self.ping_target.strip())
            except ValueError:
                errors.append("Ping target IP address is not valid.")

        return errors

    def ensure_valid(self) -> "ScanSettings":
        errors = self.validate()
        if errors:
            raise SettingsError(errors)
        return self

    # ------------------------------------------------------------------
    # Sweep enumeration
    # ------------------------------------------------------------------

    def frequencies(self) -> List[int]:
        """Frequencies from start to end inclusive, in steps."""
        if self.frequency_step <= 0:
            return []
        return list(range(self.start_frequency, self.end_frequency + 1, self.frequency_step))

    def combinations(self) -> List[ScanCombination]:
        """
        Full cross product of frequency x protocol x channel width.

        Frequency is the outer loop, channel width the inner one.  An
        empty candidate list contributes a single ``None``.
        """
        protocols: Sequence[Optional[str]] = self.wireless_protocols or (None,)
        widths: Sequence[Optional[str]] = self.channel_widths or (None,)
        return list(product(self.frequencies(), protocols, widths))


# ----------------------------------------------------------------------
# JSON presets
# ----------------------------------------------------------------------

def load_settings(path: Union[str, Path]) -> ScanSettings:
    """
    Load settings from a JSON preset file.

    Falls back to factory defaults when the file is missing or unreadable.
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"Settings file {path} not found, using defaults")
        return ScanSettings.defaults()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ScanSettings.from_dict(data)
    except (OSError, ValueError, SettingsError) as e:
        logger.error(f"Error loading settings from {path}: {e}")
        return ScanSettings.defaults()


def save_settings(settings: ScanSettings, path: Union[str, Path]) -> bool:
    """Write settings to a JSON preset file. Returns True on success."""
    path = Path(path)
    try:
        path.write_text(json.dumps(settings.to_dict(), indent=2), encoding="utf-8")
        logger.info(f"Saved settings to {path}")
        return True
    except OSError as e:
        logger.error(f"Error saving settings to {path}: {e}")
        return False