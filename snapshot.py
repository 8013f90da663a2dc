#!/usr/bin/env python3
# snapshot.py
"""
Metrics snapshot model
One immutable record of derived system metrics per sampling tick
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def format_rfc3339(ts: datetime) -> str:
    """Format an aware datetime as RFC3339 (seconds precision, Z for UTC)"""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    text = ts.isoformat(timespec='seconds')
    if text.endswith('+00:00'):
        text = text[:-6] + 'Z'
    return text


def format_rfc3339_nano(ts: datetime) -> str:
    """Same as format_rfc3339 but keeps sub-second precision"""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    text = ts.isoformat()
    if text.endswith('+00:00'):
        text = text[:-6] + 'Z'
    return text


def parse_rfc3339(text: str) -> datetime:
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return datetime.fromisoformat(text)


@dataclass(frozen=True)
class MetricsSnapshot:
    timestamp: datetime = field(default=EPOCH)
    cpu_usage_percent: float = 0.0
    mem_used_percent: float = 0.0
    mem_used_bytes: int = 0
    mem_total_bytes: int = 0
    net_interface: str = ""
    net_rx_bytes_per_sec: float = 0.0
    net_tx_bytes_per_sec: float = 0.0
    net_rx_mbps: float = 0.0
    net_tx_mbps: float = 0.0

    @classmethod
    def zero(cls) -> "MetricsSnapshot":
        """Initial 'previous' value before the first tick"""
        return cls()

    def copy(self) -> "MetricsSnapshot":
        return replace(self)

    def to_dict(self) -> dict:
        """
        Serialize using the field names of the NDJSON log format.
        """
        return {
            'Timestamp': format_rfc3339_nano(self.timestamp),
            'CPUUsagePercent': self.cpu_usage_percent,
            'MemUsedPercent': self.mem_used_percent,
            'MemUsedBytes': self.mem_used_bytes,
            'MemTotalBytes': self.mem_total_bytes,
            'NetInterface': self.net_interface,
            'NetRxBytesPS': self.net_rx_bytes_per_sec,
            'NetTxBytesPS': self.net_tx_bytes_per_sec,
            'NetRxMbps': self.net_rx_mbps,
            'NetTxMbps': self.net_tx_mbps,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MetricsSnapshot":
        return cls(
            timestamp=parse_rfc3339(data['Timestamp']),
            cpu_usage_percent=float(data['CPUUsagePercent']),
            mem_used_percent=float(data['MemUsedPercent']),
            mem_used_bytes=int(data['MemUsedBytes']),
            mem_total_bytes=int(data['MemTotalBytes']),
            net_interface=data['NetInterface'],
            net_rx_bytes_per_sec=float(data['NetRxBytesPS']),
            net_tx_bytes_per_sec=float(data['NetTxBytesPS']),
            net_rx_mbps=float(data['NetRxMbps']),
            net_tx_mbps=float(data['NetTxMbps']),
        )


def bytes_per_sec_to_mbps(rate: float) -> float:
    """Convert a byte rate into megabits per second"""
    return rate * 8.0 / 1_000_000.0
