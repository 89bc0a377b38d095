"""
Router Session Module

One persistent SSH connection to a RouterOS device.  Commands are run one
at a time through ``exec_command``; output is cleaned of terminal control
sequences before it is handed to the telemetry parser.

The session never raises from ``send_command``: transport problems are
reported through failure listeners and an empty string is returned.
"""

import logging
import re
import socket
import time
from typing import Callable, List, Optional

import paramiko

from config import (
    DEFAULT_COMMAND_TIMEOUT_MS,
    SSH_BANNER_TIMEOUT,
    SSH_CONNECT_TIMEOUT,
    SSH_LIVENESS_COMMAND,
    SSH_LIVENESS_TIMEOUT_MS,
    SSH_POST_CONNECT_DELAY,
)
from .errors import ErrorReport

logger = logging.getLogger(__name__)

_ANSI_RE = re.compile(r"\x1B(?:\[[0-9;?]*[A-Za-z]|[@-Z\\-_])")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def clean_output(text: Optional[str]) -> str:
    """
    Strip ANSI escapes, control characters and blank lines from CLI output.

    Args:
        text: Raw text received from the router

    Returns:
        Cleaned text, lines joined with ``\\n``
    """
    if not text:
        return ""
    text = _ANSI_RE.sub("", text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _CONTROL_RE.sub("", text)
    lines = []
    for line in text.split("\n"):
        line = line.rstrip()
        if line.strip():
            lines.append(line)
    return "\n".join(lines)


class RouterSession:
    """Persistent SSH session with auto-reconnect and trace listeners."""

    def __init__(self, client_factory: Callable[[], paramiko.SSHClient] = paramiko.SSHClient):
        """
        Initialize the session.

        Args:
            client_factory: Builds a fresh ``paramiko.SSHClient``
        """
        self._client_factory = client_factory
        self._client: Optional[paramiko.SSHClient] = None

        self.host: Optional[str] = None
        self.port: Optional[int] = None
        self.username: Optional[str] = None
        self._password: Optional[str] = None
        self._timeout: int = SSH_CONNECT_TIMEOUT

        self.reconnect_failed = False
        self.last_failure: Optional[ErrorReport] = None

        self._command_listeners: List[Callable[[str], None]] = []
        self._response_listeners: List[Callable[[str], None]] = []
        self._failure_listeners: List[Callable[[ErrorReport], None]] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_command_listener(self, callback: Callable[[str], None]) -> None:
        self._command_listeners.append(callback)

    def add_response_listener(self, callback: Callable[[str], None]) -> None:
        self._response_listeners.append(callback)

    def add_failure_listener(self, callback: Callable[[ErrorReport], None]) -> None:
        self._failure_listeners.append(callback)

    def _notify(self, listeners: List[Callable], payload) -> None:
        for callback in listeners:
            try:
                callback(payload)
            except Exception as e:
                logger.error(f"Session listener error: {e}")

    def _fail(self, report: ErrorReport) -> None:
        self.last_failure = report
        logger.error(str(report))
        self._notify(self._failure_listeners, report)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        if self._client is None:
            return False
        transport = self._client.get_transport()
        return transport is not None and transport.is_active()

    def connect(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        timeout: int = SSH_CONNECT_TIMEOUT,
    ) -> bool:
        """
        Open the SSH connection and check that the router answers.

        The credentials are kept for automatic reconnects.

        Args:
            host: Router address
            port: SSH port
            username: Login name
            password: Login password
            timeout: Connect timeout in seconds

        Returns:
            True when connected and the liveness check passed
        """
        self.host = host
        self.port = port
        self.username = username
        self._password = password
        self._timeout = timeout
        return self._open()

    def _open(self) -> bool:
        self._close_client()
        context = f"Connection to {self.username}@{self.host}:{self.port} failed"
        logger.info(f"Connecting to {self.username}@{self.host}:{self.port}")

        client = self._client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                self.host,
                port=self.port,
                username=self.username,
                password=self._password,
                timeout=self._timeout,
                banner_timeout=SSH_BANNER_TIMEOUT,
                look_for_keys=False,
                allow_agent=False,
            )
        except paramiko.AuthenticationException as e:
            self._fail(ErrorReport.from_exception(context, e, kind="auth"))
            client.close()
            return False
        except socket.timeout as e:
            self._fail(ErrorReport.from_exception(context, e, kind="timeout"))
            client.close()
            return False
        except paramiko.SSHException as e:
            self._fail(ErrorReport.from_exception(context, e, kind="ssh"))
            client.close()
            return False
        except OSError as e:
            self._fail(ErrorReport.from_exception(context, e, kind="socket"))
            client.close()
            return False

        self._client = client
        if SSH_POST_CONNECT_DELAY > 0:
            time.sleep(SSH_POST_CONNECT_DELAY)

        try:
            self._execute(SSH_LIVENESS_COMMAND, SSH_LIVENESS_TIMEOUT_MS)
        except (paramiko.SSHException, OSError, EOFError) as e:
            self._fail(ErrorReport.from_exception(
                "Connection test failed", e, kind="liveness"
            ))
            self._close_client()
            return False

        self.reconnect_failed = False
        logger.info(f"Connected to {self.host}:{self.port}")
        return True

    def _reconnect(self) -> bool:
        if not self.host or self.username is None:
            self._fail(ErrorReport(
                context="Reconnect failed",
                message="No stored credentials; connect first",
                kind="reconnect",
            ))
            return False

        logger.warning(f"Session to {self.host} lost, attempting to reconnect")
        if self._open():
            return True

        self._fail(ErrorReport(
            context="Reconnect failed",
            message=f"Could not re-establish SSH session to {self.host}:{self.port}",
            inner=self.last_failure.message if self.last_failure else None,
            kind="reconnect",
        ))
        return False

    def _close_client(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:
                logger.debug(f"Error closing SSH client: {e}")
            self._client = None

    def disconnect(self) -> None:
        if self._client is not None:
            logger.info(f"Disconnecting from {self.host}")
        self._close_client()

    # ------------------------------------------------------------------
    # Command execution
    # ------------------------------------------------------------------

    def _execute(self, command: str, timeout_ms: int) -> str:
        timeout = timeout_ms / 1000
        _, stdout, stderr = self._client.exec_command(command, timeout=timeout)
        out = stdout.read().decode("utf-8", errors="ignore")
        err = stderr.read().decode("utf-8", errors="ignore")

        result = clean_output(out)
        err = clean_output(err)
        if err:
            result = f"{result}\n{err}" if result else err
        return result

    def send_command(self, command: str, timeout_ms: int = DEFAULT_COMMAND_TIMEOUT_MS) -> str:
        """
        Run one command and return its cleaned output.

        Reconnects once with the stored credentials if the session dropped.
        Never raises; on transport failure a failure event is emitted and
        an empty string returned.

        Args:
            command: RouterOS command line
            timeout_ms: Command timeout in milliseconds

        Returns:
            Cleaned stdout followed by stderr, possibly empty
        """
        if not self.is_connected:
            if not self._reconnect():
                self.reconnect_failed = True
                return ""

        logger.debug(f"Sending command: {command}")
        self._notify(self._command_listeners, f"[SENT] {command}")

        try:
            result = self._execute(command, timeout_ms)
        except socket.timeout as e:
            self._fail(ErrorReport.from_exception(
                f"Command timed out after {timeout_ms} ms: {command}", e, kind="timeout"
            ))
            return ""
        except (paramiko.SSHException, OSError, EOFError) as e:
            self._fail(ErrorReport.from_exception(
                f"Command failed: {command}", e, kind="ssh"
            ))
            return ""
        except Exception as e:
            logger.debug(f"Unexpected error running {command}", exc_info=True)
            self._fail(ErrorReport.from_exception(
                f"Command failed: {command}", e, kind="ssh"
            ))
            return ""

        self._notify(self._response_listeners, f"[RECEIVED] {result}")
        return result
