#!/usr/bin/env python3
# metrics_collector.py
"""
Metrics Collector
Reads raw kernel counters from procfs and derives CPU, memory and
network rates across successive samples.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from snapshot import MetricsSnapshot, bytes_per_sec_to_mbps

logger = logging.getLogger('system-sentinel.collector')

PROC_STAT = '/proc/stat'
PROC_MEMINFO = '/proc/meminfo'
PROC_NET_DEV = '/proc/net/dev'

CPU_FIELDS = ('user', 'nice', 'system', 'idle', 'iowait', 'irq', 'softirq', 'steal')


class CollectError(Exception):
    """A procfs source could not be read or parsed"""

    def __init__(self, kind: str, cause):
        self.kind = kind
        self.cause = cause
        super().__init__(f"{kind}: {cause}")


def read_lines(path: str) -> List[str]:
    with open(path, 'r') as f:
        return f.read().splitlines()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# -------- procfs parsers --------
def parse_cpu_stat(lines: List[str]) -> Tuple[int, ...]:
    """
    Parse the aggregate 'cpu' line of /proc/stat.

    Returns:
        Tuple of (user, nice, system, idle, iowait, irq, softirq, steal);
        steal is 0 on kernels that do not report it.
    """
    if not lines:
        raise ValueError("empty /proc/stat")

    fields = lines[0].split()
    if len(fields) < 8 or fields[0] != 'cpu':
        raise ValueError("invalid cpu line")

    values = [int(v) for v in fields[1:8]]
    values.append(int(fields[8]) if len(fields) > 8 else 0)
    return tuple(values)


def parse_meminfo(lines: List[str]) -> Tuple[int, int]:
    """
    Parse MemTotal and MemAvailable from /proc/meminfo.

    Returns:
        (total_bytes, available_bytes). A missing MemAvailable is reported
        as equal to MemTotal.
    """
    total = None
    available = None

    for line in lines:
        if line.startswith('MemTotal:'):
            parts = line.split()
            if len(parts) >= 2:
                total = int(parts[1]) * 1024
        elif line.startswith('MemAvailable:'):
            parts = line.split()
            if len(parts) >= 2:
                available = int(parts[1]) * 1024
        if total is not None and available is not None:
            break

    if not total:
        raise ValueError("could not read MemTotal")
    if available is None:
        available = total

    return total, available


def parse_net_dev(lines: List[str], interface: str) -> Tuple[int, int]:
    """
    Find the interface row in /proc/net/dev.

    Returns:
        (rx_bytes, tx_bytes)
    """
    for line in lines:
        if ':' not in line:
            continue
        name, _, counters = line.partition(':')
        if name.strip() != interface:
            continue

        fields = counters.split()
        if len(fields) < 9:
            raise ValueError(f"short counter row for interface {interface}")
        return int(fields[0]), int(fields[8])

    raise ValueError(f"interface {interface} not found")


class MetricsCollector:
    """
    Stateful collector; keeps the previous sample so rates can be derived.

    Not reentrant: collect() must only be called from a single thread.
    """

    def __init__(self, interface: str,
                 reader: Callable[[str], List[str]] = read_lines,
                 clock: Callable[[], datetime] = utc_now):
        self.interface = interface
        self._read = reader
        self._clock = clock

        self._prev_cpu: Optional[Tuple[int, ...]] = None
        self._prev_net: Optional[Tuple[int, int]] = None
        self._prev_time: Optional[datetime] = None
        self.initialized = False

    def collect(self) -> MetricsSnapshot:
        """
        Take one sample.

        All three sources are read and parsed before any previous-sample
        state changes, so a failure leaves the collector as it was.

        Raises:
            CollectError: kind is 'cpu', 'memory' or 'network'
        """
        now = self._clock()

        cpu_counters = self._collect_cpu()
        mem_total, mem_available = self._collect_memory()
        rx_bytes, tx_bytes = self._collect_network()

        cpu_usage = self._cpu_usage(cpu_counters)
        rx_rate, tx_rate = self._net_rates(rx_bytes, tx_bytes, now)

        self._prev_cpu = cpu_counters
        self._prev_net = (rx_bytes, tx_bytes)
        self._prev_time = now
        self.initialized = True

        mem_used = max(mem_total - mem_available, 0)
        mem_percent = min(max(mem_used / mem_total * 100.0, 0.0), 100.0)

        return MetricsSnapshot(
            timestamp=now,
            cpu_usage_percent=cpu_usage,
            mem_used_percent=mem_percent,
            mem_used_bytes=mem_used,
            mem_total_bytes=mem_total,
            net_interface=self.interface,
            net_rx_bytes_per_sec=rx_rate,
            net_tx_bytes_per_sec=tx_rate,
            net_rx_mbps=bytes_per_sec_to_mbps(rx_rate),
            net_tx_mbps=bytes_per_sec_to_mbps(tx_rate),
        )

    def _collect_cpu(self):
        try:
            return parse_cpu_stat(self._read(PROC_STAT))
        except (OSError, ValueError) as e:
            raise CollectError('cpu', e) from e

    def _collect_memory(self):
        try:
            return parse_meminfo(self._read(PROC_MEMINFO))
        except (OSError, ValueError) as e:
            raise CollectError('memory', e) from e

    def _collect_network(self):
        try:
            return parse_net_dev(self._read(PROC_NET_DEV), self.interface)
        except (OSError, ValueError) as e:
            raise CollectError('network', e) from e

    def _cpu_usage(self, counters) -> float:
        if not self.initialized or self._prev_cpu is None:
            return 0.0

        total_delta = sum(counters) - sum(self._prev_cpu)
        # idle + iowait
        idle_delta = (counters[3] + counters[4]) - (self._prev_cpu[3] + self._prev_cpu[4])

        if total_delta == 0:
            return 0.0

        usage = (1.0 - idle_delta / total_delta) * 100.0
        return min(max(usage, 0.0), 100.0)

    def _net_rates(self, rx_bytes: int, tx_bytes: int, now: datetime):
        if not self.initialized or self._prev_net is None or self._prev_time is None:
            return 0.0, 0.0

        elapsed = (now - self._prev_time).total_seconds()
        if elapsed <= 0:
            elapsed = 1.0

        rx_rate = (rx_bytes - self._prev_net[0]) / elapsed
        tx_rate = (tx_bytes - self._prev_net[1]) / elapsed

        # counter reset (interface re-created)
        if rx_rate < 0 or tx_rate < 0:
            logger.debug(f"[Collector] {self.interface} counters went backwards, reporting 0")
        return max(rx_rate, 0.0), max(tx_rate, 0.0)
