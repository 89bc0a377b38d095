"""
Telemetry Parser Module

Turns free-form RouterOS CLI output into typed values.  The router prints
the same data in several shapes depending on the command and firmware:

    key: value                              (monitor, one pair per line)
    key=value key2=value2 key3="a b"        (print detail / print stat)
    packets=23334,25484                     (rx,tx counter pairs)

so every helper here is total: a key that is missing or unreadable yields
``None`` (or an empty list) rather than an exception.
"""

import logging
import re
from typing import Iterator, List, Optional, Tuple

from config import (
    BOOLEAN_KEYS,
    BOOLEAN_TRUE_LITERAL,
    COUNTER_PAIR_KEYS,
    FAILURE_KEYWORDS,
    HEADER_LINE_PREFIXES,
    SKIPPED_LINE_PREFIXES,
    UNIT_SUFFIXES,
)
from .models import RemoteAntennaInfo

logger = logging.getLogger(__name__)

_QUOTES = ('"', "'")
_KEY = r"[A-Za-z0-9_.]+(?:-[A-Za-z0-9_.]+)*"
_PAIR_KEY_RE = re.compile(r"(?:^|(?<=\s))(" + _KEY + r")=")
_NEXT_KEY_RE = re.compile(r"\s+" + _KEY + r"(?:=|:(?:\s|$))")
_NUMBER_RE = re.compile(r"[-+]?\d+(?:\.\d+)?")
_INT_RE = re.compile(r"[-+]?\d+")
_ENTRY_INDEX_RE = re.compile(r"^\d+(?:\s+[A-Z]{1,3})?(?:\s+|$)")
_NAME_RE = re.compile(r"(?<![\w.-])name=", re.IGNORECASE)


def _unit_pattern(units: List[str]) -> "re.Pattern":
    # Longest first so "dBm" wins over "dB"
    alternatives = "|".join(re.escape(u) for u in sorted(units, key=len, reverse=True))
    return re.compile(r"\s*(?:" + alternatives + r")\s*", re.IGNORECASE)


_UNIT_RE = _unit_pattern(UNIT_SUFFIXES)

# Registration-table key -> RemoteAntennaInfo attribute
REGISTRATION_ATTRIBUTES = {
    "radio-name": "identity",
    "identity": "identity",
    "mac-address": "mac_address",
    "ap": "ap",
    "wds": "wds",
    "bridge": "bridge",
    "signal-strength": "signal_strength",
    "signal-strength-ch0": "signal_strength_ch0",
    "signal-strength-ch1": "signal_strength_ch1",
    "tx-signal-strength": "tx_signal_strength",
    "tx-signal-strength-ch0": "tx_signal_strength_ch0",
    "tx-signal-strength-ch1": "tx_signal_strength_ch1",
    "signal-to-noise": "signal_to_noise",
    "tx-rate": "tx_rate",
    "rx-rate": "rx_rate",
    "tx-ccq": "tx_ccq",
    "rx-ccq": "rx_ccq",
    "p-throughput": "p_throughput",
    "distance": "distance",
    "uptime": "uptime",
    "last-activity": "last_activity",
    "packets": "packets",
    "bytes": "bytes",
    "frames": "frames",
    "frame-bytes": "frame_bytes",
    "hw-frames": "hw_frames",
    "hw-frame-bytes": "hw_frame_bytes",
    "tx-frames-timed-out": "tx_frames_timed_out",
    "routeros-version": "routeros_version",
    "last-ip": "last_ip",
    "nstreme": "nstreme",
    "compression": "compression",
    "wmm-enabled": "wmm_enabled",
    "framing-mode": "framing_mode",
    "authentication-type": "authentication_type",
    "encryption": "encryption",
    "group-encryption": "group_encryption",
    "management-protection": "management_protection",
    "802.1x-port-enabled": "port_8021x_enabled",
}

_STRING_ATTRIBUTES = {
    "identity", "mac_address", "uptime", "last_activity", "routeros_version",
    "last_ip", "framing_mode", "authentication_type", "encryption",
    "group_encryption", "management_protection",
}
_INTEGER_ATTRIBUTES = {"tx_frames_timed_out"}


# ----------------------------------------------------------------------
# Line helpers
# ----------------------------------------------------------------------

def _iter_lines(text: Optional[str]) -> Iterator[str]:
    """Yield trimmed data lines, dropping prompts, comments and headers."""
    if not text:
        return
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        if line.startswith(SKIPPED_LINE_PREFIXES) or line.startswith(HEADER_LINE_PREFIXES):
            continue
        yield line


def _key_pattern(key: str) -> "re.Pattern":
    # The guard keeps "signal-strength" from matching inside "tx-signal-strength"
    return re.compile(
        r"(?<![\w.-])" + re.escape(key) + r"[ \t]*[:=]", re.IGNORECASE
    )


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
        return value[1:-1]
    return value


def _read_value(line: str, start: int) -> str:
    """
    Read the value that begins at ``start``.

    A quoted value runs to its closing quote.  An unquoted value runs
    until whitespace that is followed by another ``key=`` / ``key:``
    token, or to the end of the line.
    """
    n = len(line)
    i = start
    while i < n and line[i] in " \t":
        i += 1
    if i >= n:
        return ""

    if line[i] in _QUOTES:
        quote = line[i]
        end = line.find(quote, i + 1)
        if end == -1:
            return line[i + 1:].strip()
        return line[i + 1:end]

    value_start = i
    quote = None
    while i < n:
        ch = line[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in _QUOTES:
            quote = ch
        elif ch.isspace() and _NEXT_KEY_RE.match(line, i):
            break
        i += 1
    return _strip_quotes(line[value_start:i].strip())


def _to_number(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    cleaned = _UNIT_RE.sub("", value)
    match = _NUMBER_RE.search(cleaned)
    if not match:
        return None
    try:
        return float(match.group())
    except ValueError:
        return None


def _to_int(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    match = _INT_RE.search(value)
    return int(match.group()) if match else None


# ----------------------------------------------------------------------
# Single-key extraction
# ----------------------------------------------------------------------

def parse_numeric(text: Optional[str], key: str) -> Optional[float]:
    """
    Extract a number for ``key`` from CLI output.

    Recognises ``key: value`` and ``key=value`` (case-insensitive), drops
    unit suffixes and returns the first signed decimal in the value.

    Args:
        text: Raw command response
        key: RouterOS property name, e.g. ``signal-strength``

    Returns:
        The value, or None when the key is absent or not numeric
    """
    pattern = _key_pattern(key)
    for line in _iter_lines(text):
        for match in pattern.finditer(line):
            number = _to_number(_read_value(line, match.end()))
            if number is not None:
                return number
    return None


def parse_string(text: Optional[str], key: str) -> Optional[str]:
    """
    Extract a string for ``key`` from CLI output.

    The value stops at the next ``key2=`` token on the same line; a quoted
    value is taken whole and returned without its quotes.
    """
    pattern = _key_pattern(key)
    for line in _iter_lines(text):
        for match in pattern.finditer(line):
            value = _read_value(line, match.end())
            if value:
                return value
    return None


def parse_counter_pair(value: Optional[str]) -> Tuple[Optional[int], Optional[int]]:
    """Split an ``rx,tx`` counter pair. Index 0 is received, index 1 transmitted."""
    if not value:
        return None, None
    parts = [part.strip() for part in _strip_quotes(value.strip()).split(",")]
    rx = _to_int(parts[0]) if len(parts) > 0 else None
    tx = _to_int(parts[1]) if len(parts) > 1 else None
    return rx, tx


def parse_flag(value: Optional[str]) -> bool:
    """RouterOS yes/no flag: only the literal ``yes`` is true."""
    if value is None:
        return False
    return _strip_quotes(value.strip()).lower() == BOOLEAN_TRUE_LITERAL.lower()


def parse_channel_frequency(channel: Optional[str]) -> Optional[float]:
    """Frequency part of a monitor ``channel`` value such as ``5180/20-Ce/an``."""
    if not channel:
        return None
    return _to_number(channel.split("/", 1)[0])


def has_failure_keyword(text: Optional[str], keywords: Optional[List[str]] = None) -> bool:
    """Check a device response for any of the failure keywords."""
    if not text:
        return False
    lowered = text.lower()
    return any(keyword.lower() in lowered for keyword in (keywords or FAILURE_KEYWORDS))


# ----------------------------------------------------------------------
# Multi-pair lines
# ----------------------------------------------------------------------

def _next_key(line: str, start: int) -> Optional["re.Match"]:
    """Next ``key=`` at or after ``start`` that is not inside a quoted run.

    A quote opens only at the start of the value or after whitespace.  If a
    quote never closes, the first candidate wins as if it were unquoted.
    """
    quote = None
    first = None
    checked = start

    def advance(stop: int) -> None:
        nonlocal quote
        for i in range(checked, stop):
            ch = line[i]
            if quote:
                if ch == quote:
                    quote = None
            elif ch in _QUOTES and (i == start or line[i - 1].isspace()):
                quote = ch

    for match in _PAIR_KEY_RE.finditer(line, start):
        advance(match.start())
        checked = match.start()
        if quote is None:
            return match
        if first is None:
            first = match

    advance(len(line))
    return first if quote else None


def _tokenize_pairs(line: str) -> List[Tuple[str, str]]:
    """Tier 1: regex ``word(-word)*=`` tokenizer."""
    pairs: List[Tuple[str, str]] = []
    pos = 0
    n = len(line)
    while pos < n:
        match = _PAIR_KEY_RE.search(line, pos)
        if not match:
            break
        key = match.group(1).lower()
        start = match.end()
        if start < n and line[start] in _QUOTES:
            quote = line[start]
            end = line.find(quote, start + 1)
            if end == -1:
                value = line[start + 1:].strip()
                pos = n
            else:
                value = line[start + 1:end]
                pos = end + 1
        else:
            following = _next_key(line, start)
            end = following.start() if following else n
            value = _strip_quotes(line[start:end].strip())
            pos = end
        pairs.append((key, value))
    return pairs


def _split_whitespace_pairs(line: str) -> List[Tuple[str, str]]:
    """Tier 2: whitespace tokens, ``k=v`` or ``k:`` followed by a value token."""
    pairs: List[Tuple[str, str]] = []
    tokens = line.split()
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if any(q in token for q in _QUOTES):
            i += 1
            continue
        if "=" in token:
            key, value = token.split("=", 1)
            if key:
                pairs.append((key.lower(), value))
            i += 1
        elif (
            token.endswith(":")
            and len(token) > 1
            and i + 1 < len(tokens)
            and not any(q in tokens[i + 1] for q in _QUOTES)
        ):
            pairs.append((token[:-1].lower(), tokens[i + 1]))
            i += 2
        else:
            i += 1
    return pairs


def _scan_pairs(line: str) -> List[Tuple[str, str]]:
    """Tier 3: character scanner that keeps quoted values together."""
    pairs: List[Tuple[str, str]] = []
    n = len(line)
    i = 0
    while i < n:
        while i < n and line[i].isspace():
            i += 1
        key_start = i
        while i < n and not line[i].isspace() and line[i] not in "=:":
            i += 1
        key = line[key_start:i]
        if i >= n or line[i] not in "=:" or not key:
            while i < n and not line[i].isspace():
                i += 1
            continue

        i += 1
        while i < n and line[i] in " \t":
            i += 1

        if i < n and line[i] in _QUOTES:
            quote = line[i]
            end = line.find(quote, i + 1)
            if end == -1:
                end = n
            value = line[i + 1:end]
            i = end + 1
        else:
            value_start = i
            quote = None
            while i < n and (quote or not line[i].isspace()):
                if quote and line[i] == quote:
                    quote = None
                elif not quote and line[i] in _QUOTES:
                    quote = line[i]
                i += 1
            value = _strip_quotes(line[value_start:i])

        if not any(q in key for q in _QUOTES):
            pairs.append((key.lower(), value))
    return pairs


def parse_key_value_line(line: Optional[str]) -> List[Tuple[str, str]]:
    """
    Split a line holding several ``key=value`` pairs.

    Three strategies are tried in order until one yields pairs: the
    structured tokenizer, plain whitespace splitting, and a quote-aware
    character scanner.

    Returns:
        List of (lower-cased key, value) tuples, possibly empty
    """
    if not line or not line.strip():
        return []
    line = line.strip()
    pairs = _tokenize_pairs(line)
    if not pairs:
        pairs = _split_whitespace_pairs(line)
    if not pairs:
        pairs = _scan_pairs(line)
    return pairs


# ----------------------------------------------------------------------
# Registration table
# ----------------------------------------------------------------------

def _assign_registration_field(info: RemoteAntennaInfo, key: str, value: str) -> None:
    attr = REGISTRATION_ATTRIBUTES.get(key)
    if attr is None or value is None or value == "":
        return

    if key in COUNTER_PAIR_KEYS:
        rx, tx = parse_counter_pair(value)
        if rx is not None and getattr(info, f"rx_{attr}") is None:
            setattr(info, f"rx_{attr}", rx)
        if tx is not None and getattr(info, f"tx_{attr}") is None:
            setattr(info, f"tx_{attr}", tx)
        return

    if getattr(info, attr) is not None:
        return

    if key in BOOLEAN_KEYS:
        setattr(info, attr, parse_flag(value))
    elif attr in _STRING_ATTRIBUTES:
        setattr(info, attr, value)
    elif attr in _INTEGER_ATTRIBUTES:
        number = _to_int(value)
        if number is None:
            return
        setattr(info, attr, number)
    else:
        number = _to_number(value)
        if number is None:
            return
        setattr(info, attr, number)


def parse_registration_table(text: Optional[str]) -> Optional[RemoteAntennaInfo]:
    """
    Parse the first entry of a wireless registration table.

    Handles ``print stat`` / ``print detail`` output where one entry spans
    several indented lines, as well as ``key: value`` listings.  A line
    that opens a new numbered entry ends the first one.

    Returns:
        RemoteAntennaInfo, or None if no known field was found
    """
    info = RemoteAntennaInfo()

    for line in _iter_lines(text):
        entry = _ENTRY_INDEX_RE.match(line)
        if entry:
            if info.has_data():
                break
            line = line[entry.end():]
        for key, value in parse_key_value_line(line):
            _assign_registration_field(info, key, value)

    if not info.has_data():
        logger.debug("No registration-table fields recognised")
        return None
    return info


# ----------------------------------------------------------------------
# Interface listing
# ----------------------------------------------------------------------

def parse_interface_names(text: Optional[str]) -> List[str]:
    """
    Collect interface names from ``/interface wireless print`` output.

    Quoted names (``name="wlan1 H20 AP"``) are kept whole; duplicates are
    dropped and the router's order preserved.
    """
    names: List[str] = []
    if not text:
        return names

    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith(HEADER_LINE_PREFIXES):
            continue
        match = _NAME_RE.search(line)
        if not match:
            continue

        start = match.end()
        if start < len(line) and line[start] == '"':
            end = line.find('"', start + 1)
            name = line[start + 1:end] if end != -1 else ""
        else:
            rest = line[start:]
            name = rest.split(None, 1)[0] if rest.strip() else ""

        name = name.strip()
        if name and name not in names:
            names.append(name)

    return names
