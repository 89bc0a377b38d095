"""
LinkTuner Configuration Module

Contains all configuration constants and default values for the application.
"""

import os
from pathlib import Path
from typing import Dict, List


# Environment Variable Overrides
def get_env_int(key: str, default: int) -> int:
    """Get integer from environment variable with fallback to default."""
    try:
        return int(os.getenv(key, default))
    except (ValueError, TypeError):
        return default

def get_env_bool(key: str, default: bool) -> bool:
    """Get boolean from environment variable with fallback to default."""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")

def get_env_str(key: str, default: str) -> str:
    """Get string from environment variable with fallback to default."""
    value = os.getenv(key)
    return value.strip() if value else default

def get_env_list(key: str, default: List[str]) -> List[str]:
    """Get list from comma-separated environment variable."""
    value = os.getenv(key)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


APP_VERSION = "1.0.0"

# Project Paths
PROJECT_ROOT = Path(__file__).parent
DATA_HOME = Path(get_env_str("LINKTUNER_HOME", str(PROJECT_ROOT)))
LOGS_DIR = DATA_HOME / "logs"
DB_DIR = DATA_HOME / "data"

# Ensure directories exist
LOGS_DIR.mkdir(parents=True, exist_ok=True)
DB_DIR.mkdir(parents=True, exist_ok=True)

# Database Configuration
DATABASE_URL = get_env_str("LINKTUNER_DATABASE_URL", f"sqlite:///{DB_DIR}/linktuner.db")
DB_ECHO = False  # Set to True for SQL query debugging
RESULT_RETENTION_DAYS = 90

# Web Server Configuration
DEFAULT_WEB_PORT = 5050
DEFAULT_HOST = "127.0.0.1"
WEBSOCKET_HEARTBEAT_INTERVAL = 30  # seconds

# Router / SSH defaults
DEFAULT_ROUTER_HOST = "192.168.88.1"
DEFAULT_SSH_PORT = 22
DEFAULT_USERNAME = "admin"
DEFAULT_INTERFACE = "wlan1"
SSH_CONNECT_TIMEOUT = 10  # seconds
SSH_BANNER_TIMEOUT = 5  # seconds
SSH_LIVENESS_COMMAND = ':put "test"'
SSH_LIVENESS_TIMEOUT_MS = 5000
SSH_POST_CONNECT_DELAY = 0.5  # seconds

# Command timeouts (milliseconds)
DEFAULT_COMMAND_TIMEOUT_MS = 5000
TELEMETRY_COMMAND_TIMEOUT_MS = 8000
VALIDATE_COMMAND_TIMEOUT_MS = 5000

# Sweep defaults
DEFAULT_START_FREQUENCY = 2400  # MHz
DEFAULT_END_FREQUENCY = 2500  # MHz
DEFAULT_FREQUENCY_STEP = 5  # MHz
DEFAULT_STABILIZATION_MINUTES = 2
MIN_FREQUENCY = 1000  # MHz
MAX_FREQUENCY = 6000  # MHz
MAX_STABILIZATION_MINUTES = 60
DEFAULT_WIRELESS_PROTOCOLS = ["nstreme", "nv2", "802.11"]
DEFAULT_CHANNEL_WIDTHS = ["20/40mhz-eC", "20/40mhz-Ce", "20mhz"]

# Ping probe defaults
DEFAULT_PING_TARGET = "8.8.8.8"
DEFAULT_PING_COUNT = 4
DEFAULT_PING_TIMEOUT_MS = 5000
PING_INTER_PROBE_DELAY = 0.2  # seconds

# Command template placeholders
PLACEHOLDER_INTERFACE = "{interface}"
PLACEHOLDER_FREQUENCY = "{frequency}"
PLACEHOLDER_PROTOCOL = "{protocol}"
PLACEHOLDER_CHANNEL_WIDTH = "{channelWidth}"

# RouterOS command templates (overridable per run through ScanSettings)
DEFAULT_COMMANDS: Dict[str, str] = {
    "set_frequency": '/interface wireless set "{interface}" frequency={frequency}',
    "set_wireless_protocol": '/interface wireless set "{interface}" wireless-protocol={protocol}',
    "set_channel_width": '/interface wireless set "{interface}" channel-width={channelWidth}',
    "get_interface_info": '/interface wireless print detail where name="{interface}"',
    "get_interface_info_fallback": '/interface wireless print where name="{interface}"',
    "get_registration_table": '/interface wireless registration-table print stat where interface="{interface}"',
    "monitor_interface": '/interface wireless monitor "{interface}" once',
    "validate_interface": "/interface wireless print",
}

# Device response vocabulary
FAILURE_KEYWORDS = get_env_list(
    "LINKTUNER_FAILURE_KEYWORDS",
    ["invalid", "error", "failure", "failed", "not found", "no such"],
)
UNIT_SUFFIXES = get_env_list(
    "LINKTUNER_UNIT_SUFFIXES",
    ["dBm", "dB", "%", "MHz", "GHz", "Mbps", "Kbps", "bps"],
)
BOOLEAN_TRUE_LITERAL = get_env_str("LINKTUNER_BOOLEAN_TRUE", "yes")
SKIPPED_LINE_PREFIXES = (">", "#", "@", ";;;")
HEADER_LINE_PREFIXES = ("Flags:", "Columns:")

# Registration-table keys reported as "received,transmitted" integer pairs
COUNTER_PAIR_KEYS = ["packets", "bytes", "frames", "frame-bytes", "hw-frames", "hw-frame-bytes"]

# Registration-table keys reported as yes/no
BOOLEAN_KEYS = ["ap", "wds", "bridge", "nstreme", "compression", "wmm-enabled", "802.1x-port-enabled"]

# Logging Configuration
LOG_FILE = LOGS_DIR / "linktuner.log"
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Export Configuration
EXPORT_FORMATS = ["json", "csv"]
MAX_EXPORT_RECORDS = 10000

# Apply environment overrides
WEB_HOST = get_env_str("LINKTUNER_HOST", DEFAULT_HOST)
WEB_PORT = get_env_int("LINKTUNER_PORT", DEFAULT_WEB_PORT)
DEBUG_MODE = get_env_bool("LINKTUNER_DEBUG", False)
ALLOWED_ORIGINS = get_env_list(
    "LINKTUNER_ALLOWED_ORIGINS",
    [
        f"http://localhost:{WEB_PORT}",
        f"http://127.0.0.1:{WEB_PORT}",
    ],
)
