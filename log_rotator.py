#!/usr/bin/env python3
# log_rotator.py
"""
Retention rotator
Background thread that deletes daily event logs older than the retention window.
"""

import logging
import os
import re
import threading
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional

logger = logging.getLogger('system-sentinel.rotator')

ROTATE_INTERVAL = 6 * 60 * 60  # seconds
FILENAME_PATTERN = re.compile(r'^metrics-(\d{4}-\d{2}-\d{2})\.ndjson$')


def log_file_date(name: str) -> Optional[date]:
    """Date embedded in a metrics-YYYY-MM-DD.ndjson name, None if it doesn't match"""
    m = FILENAME_PATTERN.match(name)
    if not m:
        return None
    try:
        return datetime.strptime(m.group(1), '%Y-%m-%d').date()
    except ValueError:
        return None


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class LogRotator:
    def __init__(self, log_dir: str, retention_days: int,
                 interval: float = ROTATE_INTERVAL,
                 today: Callable[[], date] = utc_today):
        self.log_dir = log_dir
        self.retention_days = retention_days
        self.interval = interval
        self._today = today
        self._stop_flag = threading.Event()
        self._thread = None

    def start(self):
        self._stop_flag.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name='LogRotator')
        self._thread.start()
        logger.info(
            f"[Rotator] Started (retention={self.retention_days}d, every {self.interval / 3600:g}h)"
        )

    def stop(self):
        self._stop_flag.set()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("[Rotator] Stopped")

    def _run(self):
        self.rotate()
        while not self._stop_flag.wait(timeout=self.interval):
            self.rotate()

    def rotate(self) -> List[str]:
        """
        One retention pass.

        Returns:
            Paths that were deleted
        """
        try:
            names = os.listdir(self.log_dir)
        except OSError as e:
            logger.debug(f"[Rotator] Cannot list {self.log_dir}: {e}")
            return []

        cutoff = self._today() - timedelta(days=self.retention_days)
        removed = []

        for name in names:
            file_date = log_file_date(name)
            if file_date is None or file_date >= cutoff:
                continue

            path = os.path.join(self.log_dir, name)
            if not os.path.isfile(path):
                continue
            try:
                os.remove(path)
                removed.append(path)
            except OSError as e:
                logger.debug(f"[Rotator] Could not remove {path}: {e}")

        if removed:
            logger.info(f"[Rotator] Removed {len(removed)} expired log file(s)")
        return removed
