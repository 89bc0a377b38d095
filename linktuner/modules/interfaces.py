"""
Interface Validator Module

Pre-flight check that the wireless interface named in the scan settings
actually exists on the router.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from config import VALIDATE_COMMAND_TIMEOUT_MS
from .settings import ScanSettings
from .telemetry import parse_interface_names
from .templating import render_command

logger = logging.getLogger(__name__)


@dataclass
class InterfaceValidationResult:
    """Outcome of an interface pre-check."""

    is_valid: bool
    error_message: Optional[str] = None
    available_interfaces: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "is_valid": self.is_valid,
            "error_message": self.error_message,
            "available_interfaces": list(self.available_interfaces),
        }


class InterfaceValidator:
    """Looks up the router's wireless interfaces and checks a name against them."""

    def __init__(self, timeout_ms: int = VALIDATE_COMMAND_TIMEOUT_MS):
        self.timeout_ms = timeout_ms

    def list_interfaces(self, session, settings: ScanSettings) -> Optional[List[str]]:
        """
        Fetch wireless interface names from the router.

        Returns:
            List of names, or None if the router sent nothing back
        """
        command = render_command(
            settings.commands.validate_interface, settings.interface_name
        )
        response = session.send_command(command, self.timeout_ms)
        if not response or not response.strip():
            return None
        return parse_interface_names(response)

    def validate(
        self,
        session,
        settings: ScanSettings,
        interface_name: Optional[str] = None,
    ) -> InterfaceValidationResult:
        """
        Check that ``interface_name`` exists on the router.

        Args:
            session: Connected RouterSession
            settings: Scan settings providing the validate command
            interface_name: Name to look for; defaults to the settings' interface

        Returns:
            InterfaceValidationResult
        """
        name = interface_name if interface_name is not None else settings.interface_name

        if session is None or not session.is_connected:
            return InterfaceValidationResult(False, "Not connected to the router.")

        if not name or not name.strip():
            return InterfaceValidationResult(False, "Interface name must not be empty.")

        available = self.list_interfaces(session, settings)
        if available is None:
            return InterfaceValidationResult(
                False, "No response from router while listing wireless interfaces."
            )

        wanted = name.strip().lower()
        if any(candidate.lower() == wanted for candidate in available):
            logger.info(f"Interface '{name}' found on router")
            return InterfaceValidationResult(True, None, available)

        listing = ", ".join(available) if available else "none"
        logger.warning(f"Interface '{name}' not found; available: {listing}")
        return InterfaceValidationResult(
            False,
            f"Interface '{name}' was not found on the router. Available interfaces: {listing}",
            available,
        )
