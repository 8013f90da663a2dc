#!/usr/bin/env python3
# system_sentinel.py
import argparse
import logging
import os
import signal
import sys
import threading
import time
import traceback
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from alert_manager import AlertManager
from config_store import DEFAULT_CONFIG_PATH, ConfigError, load_config
from event_logger import EventLogger
from log_rotator import LogRotator
from metrics_collector import CollectError, MetricsCollector
from script_runner import ScriptError, ScriptRunner
from snapshot import MetricsSnapshot
from spike_detector import SpikeDetector
from system_info import get_system_info, interface_exists

VERSION = "1.0.0"

logger = logging.getLogger('system-sentinel')


def setup_logging(level='INFO', log_file=None, max_bytes=10 * 1024 * 1024, backup_count=5):
    """File + console handlers on the 'system-sentinel' logger"""
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    # Console goes to stderr
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter('[%(levelname)s] %(message)s'))
    logger.addHandler(console)

    if not log_file:
        return
    try:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(handler)
    except OSError as e:
        logger.error(f"Could not create log file {log_file}: {e}")


class SystemSentinel:
    """
    Drives Collector -> (SpikeDetector, AlertManager) -> EventLogger -> ScriptRunner
    once per sample interval.
    """

    def __init__(self, config, collector=None, spike_detector=None, alert_manager=None,
                 event_logger=None, rotator=None, script_runner=None,
                 clock=time.monotonic):
        self.config = config
        self.sample_interval = config.sample_interval
        self.collection_interval = config.collection_interval
        self.scripts_enabled = bool(config.get('scripts.enabled'))

        self.collector = collector or MetricsCollector(config.get('interface'))
        self.spike_detector = spike_detector or SpikeDetector(config)
        self.alert_manager = alert_manager or AlertManager(config)
        self.event_logger = event_logger or EventLogger(config.get('log_dir'))
        self.rotator = rotator or LogRotator(config.get('log_dir'), config.get('retention_days'))
        self.script_runner = script_runner or ScriptRunner(config)

        self._clock = clock
        self._stop_flag = threading.Event()
        self._stopped = False
        self.last_snapshot = MetricsSnapshot.zero()
        self._last_sample_write: Optional[float] = None

    def start(self):
        self.rotator.start()

    def stop(self):
        """Stop the rotator and close the event log; script rounds are not awaited"""
        if self._stopped:
            return
        self._stopped = True
        self._stop_flag.set()
        self.rotator.stop()
        self.event_logger.close()

    def request_stop(self, signum=None, frame=None):
        if signum is not None:
            logger.info(f"Received signal {signal.Signals(signum).name}, shutting down")
        self._stop_flag.set()

    def run(self):
        """Tick until request_stop() is called"""
        self.start()
        next_tick = self._clock() + self.sample_interval

        while not self._stop_flag.wait(timeout=max(0.0, next_tick - self._clock())):
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Tick failed: {e}", exc_info=True)

            next_tick += self.sample_interval
            now = self._clock()
            if next_tick <= now:
                # fell behind; drop missed ticks
                next_tick = now + self.sample_interval

        self.stop()

    def tick(self) -> Optional[MetricsSnapshot]:
        """One pass of the pipeline. Returns the new snapshot, or None if collection failed."""
        try:
            snap = self.collector.collect()
        except CollectError as e:
            logger.error(f"[Collector] metrics collect error: {e}")
            return None

        previous = self.last_snapshot

        spike_types = self.spike_detector.detect(snap, previous)
        if spike_types:
            try:
                self.event_logger.log_spike(snap, spike_types)
            except OSError as e:
                logger.error(f"[EventLogger] log spike error: {e}")

        alert_types = self.alert_manager.detect(snap, previous)
        if alert_types:
            logger.warning(f"[ALERT] {', '.join(alert_types)} threshold breached")
            try:
                self.event_logger.log_alert(snap, alert_types)
            except OSError as e:
                logger.error(f"[EventLogger] log alert error: {e}")

            if self.scripts_enabled and self.alert_manager.should_execute_scripts(alert_types):
                self.dispatch_scripts(list(alert_types), snap.copy())

        now = self._clock()
        if self._last_sample_write is None or now - self._last_sample_write >= self.collection_interval:
            try:
                self.event_logger.log_sample(snap)
            except OSError as e:
                logger.error(f"[EventLogger] log sample error: {e}")
            self._last_sample_write = now

        self.last_snapshot = snap
        return snap

    def dispatch_scripts(self, alert_types: List[str], snapshot: MetricsSnapshot) -> threading.Thread:
        """Run one script round on its own thread; never joined"""
        thread = threading.Thread(
            target=self._script_round,
            args=(alert_types, snapshot),
            daemon=True,
            name='ScriptRound',
        )
        thread.start()
        return thread

    def _script_round(self, alert_types, snapshot):
        try:
            self.script_runner.execute(alert_types, snapshot)
        except ScriptError as e:
            logger.error(f"[ScriptRunner] script execution error: {e}")
        except Exception as e:
            logger.error(f"[ScriptRunner] unexpected error: {e}", exc_info=True)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="System Sentinel (CPU/memory/network spike + alert monitor)"
    )
    parser.add_argument("--config", "-c", default=DEFAULT_CONFIG_PATH,
                        help=f"path to config.yaml (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument("--version", action="version", version=f"system-sentinel v{VERSION}",
                        help="show version and exit")
    return parser.parse_args(argv)


def log_critical_block(title, error):
    logger.critical("=" * 60)
    logger.critical(f"❌ FATAL: {title}")
    logger.critical("=" * 60)
    logger.critical(f"Error: {error}")
    logger.critical(f"Type: {type(error).__name__}")
    for line in traceback.format_exc().split('\n'):
        if line:
            logger.critical(line)
    logger.critical("=" * 60)


def main(argv=None):
    args = parse_args(argv)
    setup_logging()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.critical(f"Failed to load config: {e}")
        return 1

    setup_logging(
        level=config.get('logging.level'),
        log_file=config.get('logging.file'),
        max_bytes=config.get('logging.max_bytes'),
        backup_count=config.get('logging.backup_count'),
    )

    try:
        logger.info("=" * 60)
        logger.info(f"System Sentinel Starting - Version {VERSION}")
        logger.info("=" * 60)

        info = get_system_info()
        logger.info(f"Host: {info['Hostname']} ({info['OS']} {info['OS_Release']}, "
                    f"{info['CPU_logical_Core']} CPUs, {info['Total_RAM_GB']} GB RAM)")

        interface = config.get('interface')
        if not interface_exists(interface):
            logger.warning(f"Interface {interface} not found (available: {', '.join(info['Interfaces'])})")

        sentinel = SystemSentinel(config)

        logger.info(f"Config file: {args.config}")
        logger.info(f"Interface: {interface}")
        logger.info(f"Sample interval: {config.get('sample_interval_sec')}s")
        logger.info(f"Collection interval: {config.get('collection_interval_sec')}s")
        logger.info(f"Event log dir: {config.get('log_dir')} (retention {config.get('retention_days')}d)")
        if sentinel.scripts_enabled:
            logger.info(f"Scripts: ENABLED ({config.get('scripts.dir')})")
        else:
            logger.info("Scripts: DISABLED")
        logger.info("=" * 60)
    except Exception as e:
        log_critical_block("Sentinel failed to initialize", e)
        return 1

    signal.signal(signal.SIGINT, sentinel.request_stop)
    signal.signal(signal.SIGTERM, sentinel.request_stop)

    try:
        sentinel.run()
    except Exception as e:
        log_critical_block("Sentinel crashed during runtime", e)
        sentinel.stop()
        return 1

    logger.info("Sentinel stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
