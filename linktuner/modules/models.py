"""
Scan Data Models

Result records produced by a frequency sweep and the transient
structures the telemetry parser and ping prober hand to the scanner.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Dict, Optional

STATUS_BASE = "base"
STATUS_SUCCESS = "success"
STATUS_ERROR = "error"
STATUS_STATUS = "status"


@dataclass
class RemoteAntennaInfo:
    """Remote peer as reported by one registration-table entry."""

    identity: Optional[str] = None
    mac_address: Optional[str] = None
    ap: Optional[bool] = None
    wds: Optional[bool] = None
    bridge: Optional[bool] = None
    signal_strength: Optional[float] = None
    signal_strength_ch0: Optional[float] = None
    signal_strength_ch1: Optional[float] = None
    tx_signal_strength: Optional[float] = None
    tx_signal_strength_ch0: Optional[float] = None
    tx_signal_strength_ch1: Optional[float] = None
    signal_to_noise: Optional[float] = None
    tx_rate: Optional[float] = None
    rx_rate: Optional[float] = None
    tx_ccq: Optional[float] = None
    rx_ccq: Optional[float] = None
    p_throughput: Optional[float] = None
    distance: Optional[float] = None
    uptime: Optional[str] = None
    last_activity: Optional[str] = None
    rx_packets: Optional[int] = None
    tx_packets: Optional[int] = None
    rx_bytes: Optional[int] = None
    tx_bytes: Optional[int] = None
    rx_frames: Optional[int] = None
    tx_frames: Optional[int] = None
    rx_frame_bytes: Optional[int] = None
    tx_frame_bytes: Optional[int] = None
    rx_hw_frames: Optional[int] = None
    tx_hw_frames: Optional[int] = None
    rx_hw_frame_bytes: Optional[int] = None
    tx_hw_frame_bytes: Optional[int] = None
    tx_frames_timed_out: Optional[int] = None
    routeros_version: Optional[str] = None
    last_ip: Optional[str] = None
    nstreme: Optional[bool] = None
    compression: Optional[bool] = None
    wmm_enabled: Optional[bool] = None
    framing_mode: Optional[str] = None
    authentication_type: Optional[str] = None
    encryption: Optional[str] = None
    group_encryption: Optional[str] = None
    management_protection: Optional[str] = None
    port_8021x_enabled: Optional[bool] = None

    def has_data(self) -> bool:
        return any(getattr(self, f.name) is not None for f in fields(self))

    def summary(self) -> str:
        def fmt(value, unit=""):
            return "N/A" if value is None else f"{value:.1f}{unit}"

        return (
            f"MAC={self.mac_address or 'N/A'}, "
            f"Identity={self.identity or 'N/A'}, "
            f"Signal={fmt(self.signal_strength, 'dBm')}, "
            f"SNR={fmt(self.signal_to_noise, 'dB')}, "
            f"TxRate={fmt(self.tx_rate, 'Mbps')}, "
            f"RxRate={fmt(self.rx_rate, 'Mbps')}, "
            f"CCQ={fmt(self.tx_ccq, '%')}"
        )


@dataclass
class PingStats:
    """Aggregated outcome of a ping probe run."""

    target: Optional[str] = None
    sent: int = 0
    received: int = 0
    min_ms: Optional[float] = None
    max_ms: Optional[float] = None
    avg_ms: Optional[int] = None

    @property
    def lost(self) -> int:
        return self.sent - self.received

    @property
    def loss_percent(self) -> float:
        if self.sent == 0:
            return 0.0
        return self.lost / self.sent * 100

    @property
    def success(self) -> bool:
        return self.received > 0

    def to_dict(self) -> Dict:
        return {
            "target": self.target,
            "sent": self.sent,
            "received": self.received,
            "lost": self.lost,
            "loss_percent": self.loss_percent,
            "min_ms": self.min_ms,
            "max_ms": self.max_ms,
            "avg_ms": self.avg_ms,
            "success": self.success,
        }


@dataclass(frozen=True)
class BaselineSettings:
    """Radio configuration found on the router before the sweep began."""

    frequency: Optional[float] = None
    wireless_protocol: Optional[str] = None
    channel_width: Optional[str] = None

    @classmethod
    def from_result(cls, result: "ScanResult") -> "BaselineSettings":
        return cls(
            frequency=result.frequency or None,
            wireless_protocol=result.wireless_protocol or None,
            channel_width=result.channel_width or None,
        )

    def is_empty(self) -> bool:
        return (
            self.frequency is None
            and self.wireless_protocol is None
            and self.channel_width is None
        )


@dataclass
class ScanResult:
    """One row of sweep output: local radio, remote peer and ping metrics."""

    frequency: Optional[float] = None
    wireless_protocol: Optional[str] = None
    channel_width: Optional[str] = None
    scan_time: datetime = field(default_factory=datetime.now)
    status: Optional[str] = None
    error_message: Optional[str] = None

    # Local radio
    signal_strength: Optional[float] = None
    noise_floor: Optional[float] = None
    antenna_power: Optional[float] = None
    tx_rate: Optional[float] = None
    rx_rate: Optional[float] = None
    download_speed: Optional[float] = None
    upload_speed: Optional[float] = None
    ccq: Optional[float] = None
    band: Optional[str] = None

    # Remote peer (copied from RemoteAntennaInfo)
    remote_identity: Optional[str] = None
    remote_mac_address: Optional[str] = None
    remote_ap: Optional[bool] = None
    remote_wds: Optional[bool] = None
    remote_bridge: Optional[bool] = None
    remote_signal_strength: Optional[float] = None
    remote_signal_strength_ch0: Optional[float] = None
    remote_signal_strength_ch1: Optional[float] = None
    remote_tx_signal_strength: Optional[float] = None
    remote_tx_signal_strength_ch0: Optional[float] = None
    remote_tx_signal_strength_ch1: Optional[float] = None
    remote_signal_to_noise: Optional[float] = None
    remote_tx_rate: Optional[float] = None
    remote_rx_rate: Optional[float] = None
    remote_tx_ccq: Optional[float] = None
    remote_rx_ccq: Optional[float] = None
    remote_p_throughput: Optional[float] = None
    remote_distance: Optional[float] = None
    remote_uptime: Optional[str] = None
    remote_last_activity: Optional[str] = None
    remote_rx_packets: Optional[int] = None
    remote_tx_packets: Optional[int] = None
    remote_rx_bytes: Optional[int] = None
    remote_tx_bytes: Optional[int] = None
    remote_rx_frames: Optional[int] = None
    remote_tx_frames: Optional[int] = None
    remote_rx_frame_bytes: Optional[int] = None
    remote_tx_frame_bytes: Optional[int] = None
    remote_rx_hw_frames: Optional[int] = None
    remote_tx_hw_frames: Optional[int] = None
    remote_rx_hw_frame_bytes: Optional[int] = None
    remote_tx_hw_frame_bytes: Optional[int] = None
    remote_tx_frames_timed_out: Optional[int] = None
    remote_routeros_version: Optional[str] = None
    remote_last_ip: Optional[str] = None
    remote_nstreme: Optional[bool] = None
    remote_compression: Optional[bool] = None
    remote_wmm_enabled: Optional[bool] = None
    remote_framing_mode: Optional[str] = None
    remote_authentication_type: Optional[str] = None
    remote_encryption: Optional[str] = None
    remote_group_encryption: Optional[str] = None
    remote_management_protection: Optional[str] = None
    remote_port_8021x_enabled: Optional[bool] = None

    # Ping probe
    ping_target: Optional[str] = None
    ping_sent: Optional[int] = None
    ping_received: Optional[int] = None
    ping_lost: Optional[int] = None
    ping_loss_percent: Optional[float] = None
    ping_min_ms: Optional[float] = None
    ping_max_ms: Optional[float] = None
    ping_avg_ms: Optional[int] = None
    ping_success: Optional[bool] = None

    @property
    def signal_to_noise_ratio(self) -> Optional[float]:
        """Signal minus noise floor; None unless both are known."""
        if self.signal_strength is None or self.noise_floor is None:
            return None
        return self.signal_strength - self.noise_floor

    def apply_remote(self, info: RemoteAntennaInfo) -> None:
        for f in fields(info):
            setattr(self, f"remote_{f.name}", getattr(info, f.name))

    def apply_ping(self, stats: PingStats) -> None:
        self.ping_target = stats.target
        self.ping_sent = stats.sent
        self.ping_received = stats.received
        self.ping_lost = stats.lost
        self.ping_loss_percent = stats.loss_percent
        self.ping_min_ms = stats.min_ms
        self.ping_max_ms = stats.max_ms
        self.ping_avg_ms = stats.avg_ms
        self.ping_success = stats.success

    def mark_error(self, message: str) -> None:
        self.status = STATUS_ERROR
        self.error_message = message

    def to_dict(self) -> Dict:
        """Convert to dictionary representation."""
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            data[f.name] = value
        data["signal_to_noise_ratio"] = self.signal_to_noise_ratio
        return data

    def __repr__(self) -> str:
        return (
            f"<ScanResult {self.frequency} MHz [{self.status}]"
            f" protocol={self.wireless_protocol} width={self.channel_width}"
            f" snr={self.signal_to_noise_ratio}>"
        )
