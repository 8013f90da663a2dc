#!/usr/bin/env python3
# alert_manager.py
"""
Alert Manager - threshold alerts and script debouncing
"""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from snapshot import MetricsSnapshot
from spike_detector import exceeds_absolute, exceeds_relative

logger = logging.getLogger('system-sentinel.alerts')


class Debouncer:
    """
    Per-category record of when a category last took part in a script round.

    A round is admitted when at least one category is outside its window;
    every category in an admitted round is then stamped with the same instant,
    so a rarely tripping category cannot ride along on a noisy one's rounds.
    """

    def __init__(self, interval_sec: float, clock: Callable[[], float] = time.monotonic):
        self.interval = interval_sec
        self._clock = clock
        self._lock = threading.Lock()
        self.last_fired: Dict[str, float] = {}

    def should_execute(self, categories: List[str]) -> bool:
        if not categories:
            return False

        with self._lock:
            now = self._clock()

            admitted = False
            for category in categories:
                last = self.last_fired.get(category)
                if last is None or now - last >= self.interval:
                    admitted = True
                    break

            if admitted:
                for category in categories:
                    self.last_fired[category] = now

            return admitted

    def last_fired_at(self, category: str) -> Optional[float]:
        with self._lock:
            return self.last_fired.get(category)


class AlertManager:
    def __init__(self, config, clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.debouncer = Debouncer(config.get('scripts.debounce_sec'), clock=clock)
        logger.info(
            f"[AlertManager] Initialized (debounce={config.get('scripts.debounce_sec')}s)"
        )

    def detect(self, current: MetricsSnapshot, previous: MetricsSnapshot) -> List[str]:
        """Return tripped alert categories in cpu, memory, network order"""
        alerts = []

        if self.config.get('alerts.cpu.enabled'):
            if self.check_cpu_alert(current, previous):
                alerts.append('cpu')

        if self.config.get('alerts.memory.enabled'):
            if self.check_memory_alert(current):
                alerts.append('memory')

        if self.config.get('alerts.network.enabled'):
            if self.check_network_alert(current):
                alerts.append('network')

        return alerts

    def should_execute_scripts(self, alert_types: List[str]) -> bool:
        """Ask the debouncer whether this alert round may run scripts"""
        admitted = self.debouncer.should_execute(alert_types)
        if not admitted and alert_types:
            logger.debug(f"[AlertManager] Scripts debounced for {alert_types}")
        return admitted

    def check_cpu_alert(self, current, previous):
        cfg = self.config.section('alerts.cpu')
        return (
            exceeds_absolute(current.cpu_usage_percent, cfg['absolute_threshold'])
            or exceeds_relative(current.cpu_usage_percent, previous.cpu_usage_percent,
                                cfg['relative_threshold'])
        )

    def check_memory_alert(self, current):
        cfg = self.config.section('alerts.memory')
        return exceeds_absolute(current.mem_used_percent, cfg['absolute_threshold'])

    def check_network_alert(self, current):
        cfg = self.config.section('alerts.network')
        return (
            exceeds_absolute(current.net_rx_mbps, cfg['rx_mbps_threshold'])
            or exceeds_absolute(current.net_tx_mbps, cfg['tx_mbps_threshold'])
        )
