#!/usr/bin/env python3
# spike_detector.py
"""
Spike Detector - flags sudden or absolute jumps in CPU, memory and network
Spikes are logged only; they never trigger scripts.
"""

from typing import List

from snapshot import MetricsSnapshot

CATEGORIES = ('cpu', 'memory', 'network')


def exceeds_absolute(value: float, threshold: float) -> bool:
    return value >= threshold


def exceeds_relative(current: float, previous: float, threshold: float) -> bool:
    """
    Percentage increase of current over previous, compared with threshold.
    Skipped (False) when there is no previous value or the threshold is off.
    """
    if previous <= 0 or threshold <= 0:
        return False
    change = (current - previous) / previous * 100.0
    return change >= threshold


class SpikeDetector:
    """Stateless; evaluates a (current, previous) snapshot pair"""

    def __init__(self, config):
        self.config = config

    def detect(self, current: MetricsSnapshot, previous: MetricsSnapshot) -> List[str]:
        """Return tripped categories in cpu, memory, network order"""
        spikes = []

        if self.config.get('spikes.cpu.enabled'):
            if self._detect_cpu_spike(current, previous):
                spikes.append('cpu')

        if self.config.get('spikes.memory.enabled'):
            if self._detect_memory_spike(current, previous):
                spikes.append('memory')

        if self.config.get('spikes.network.enabled'):
            if self._detect_network_spike(current, previous):
                spikes.append('network')

        return spikes

    def _detect_cpu_spike(self, current, previous):
        cfg = self.config.section('spikes.cpu')
        return (
            exceeds_absolute(current.cpu_usage_percent, cfg['absolute_threshold'])
            or exceeds_relative(current.cpu_usage_percent, previous.cpu_usage_percent,
                                cfg['relative_threshold'])
        )

    def _detect_memory_spike(self, current, previous):
        cfg = self.config.section('spikes.memory')
        return (
            exceeds_absolute(current.mem_used_percent, cfg['absolute_threshold'])
            or exceeds_relative(current.mem_used_percent, previous.mem_used_percent,
                                cfg['relative_threshold'])
        )

    def _detect_network_spike(self, current, previous):
        cfg = self.config.section('spikes.network')

        if exceeds_absolute(current.net_rx_mbps, cfg['rx_mbps_threshold']):
            return True
        if exceeds_absolute(current.net_tx_mbps, cfg['tx_mbps_threshold']):
            return True

        # rx and tx are judged independently
        relative = cfg['relative_threshold']
        return (
            exceeds_relative(current.net_rx_mbps, previous.net_rx_mbps, relative)
            or exceeds_relative(current.net_tx_mbps, previous.net_tx_mbps, relative)
        )
