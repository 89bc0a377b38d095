"""
Ping Prober Module

Measures reachability and latency to a target by sending individual ICMP
echoes through the system ``ping`` binary and aggregating the replies.
"""

import logging
import math
import re
import subprocess
import time
from typing import Callable, List, Optional

from config import DEFAULT_PING_COUNT, DEFAULT_PING_TIMEOUT_MS, PING_INTER_PROBE_DELAY
from .models import PingStats

logger = logging.getLogger(__name__)

_RTT_RE = re.compile(r"time[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)


class PingProber:
    """Sequential single-echo ping runner."""

    def __init__(
        self,
        interval: float = PING_INTER_PROBE_DELAY,
        runner: Callable = subprocess.run,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the prober.

        Args:
            interval: Pause between consecutive echoes in seconds
            runner: ``subprocess.run`` compatible callable
            sleep: Sleep function used for the inter-probe pause
        """
        self.interval = interval
        self._runner = runner
        self._sleep = sleep

    def _send_echo(self, ip: str, timeout_ms: int) -> Optional[float]:
        """
        Send one echo request.

        Returns:
            Round-trip time in milliseconds, or None if no reply arrived
        """
        wait_seconds = max(1, math.ceil(timeout_ms / 1000))
        cmd = ["ping", "-c", "1", "-W", str(wait_seconds), ip]
        try:
            result = self._runner(
                cmd,
                capture_output=True,
                text=True,
                timeout=wait_seconds + 2,
            )
        except subprocess.TimeoutExpired:
            logger.debug(f"Ping to {ip} timed out")
            return None
        except OSError as e:
            logger.warning(f"Could not run ping for {ip}: {e}")
            return None

        if result.returncode != 0:
            return None

        match = _RTT_RE.search(result.stdout or "")
        if not match:
            logger.debug(f"Reply from {ip} without a parsable round-trip time")
            return 0.0
        try:
            return float(match.group(1))
        except ValueError:
            return 0.0

    def probe(
        self,
        ip: str,
        count: int = DEFAULT_PING_COUNT,
        timeout_ms: int = DEFAULT_PING_TIMEOUT_MS,
        cancel_token=None,
    ) -> PingStats:
        """
        Ping ``ip`` ``count`` times and aggregate the outcome.

        Any failure of an individual echo counts as a lost packet; the
        call itself never raises.  When ``cancel_token`` is set, probing
        stops before the next echo and unsent echoes are not counted.

        Args:
            ip: Target IP address
            count: Number of echoes to send
            timeout_ms: Per-echo timeout in milliseconds
            cancel_token: Object with a ``cancelled`` attribute, or None

        Returns:
            PingStats for the echoes actually sent
        """
        stats = PingStats(target=ip)
        rtts: List[float] = []

        for i in range(count):
            if cancel_token is not None and cancel_token.cancelled:
                logger.debug(f"Ping to {ip} cancelled after {stats.sent} probes")
                break

            stats.sent += 1
            try:
                rtt = self._send_echo(ip, timeout_ms)
            except Exception as e:
                logger.debug(f"Ping probe {i + 1} to {ip} failed: {e}")
                rtt = None

            if rtt is not None:
                stats.received += 1
                rtts.append(rtt)

            if i < count - 1 and self.interval > 0:
                self._sleep(self.interval)

        if rtts:
            stats.min_ms = min(rtts)
            stats.max_ms = max(rtts)
            stats.avg_ms = int(sum(rtts) / len(rtts))

        logger.debug(
            f"Ping {ip}: {stats.received}/{stats.sent} replies, avg={stats.avg_ms}ms"
        )
        return stats
