#!/usr/bin/env python3
# event_logger.py
"""
Event Logger
Appends sample/spike/alert events as NDJSON to one file per UTC day.
"""

import json
import logging
import os
import threading
from datetime import datetime, timezone
from typing import Callable, List, Optional

from snapshot import MetricsSnapshot, format_rfc3339

logger = logging.getLogger('system-sentinel.events')

FILE_PREFIX = 'metrics-'
FILE_SUFFIX = '.ndjson'


def log_file_name(date_tag: str) -> str:
    return f"{FILE_PREFIX}{date_tag}{FILE_SUFFIX}"


def event_metric(reasons: List[str]) -> str:
    """Single category name when exactly one tripped, otherwise 'multi'"""
    return reasons[0] if len(reasons) == 1 else 'multi'


def build_event(event_type: str, metric: str, reasons: Optional[List[str]],
                snapshot: MetricsSnapshot) -> dict:
    event = {
        'timestamp': format_rfc3339(snapshot.timestamp),
        'type': event_type,
        'metric': metric,
    }
    if reasons:
        event['reasons'] = list(reasons)
    event['metrics'] = snapshot.to_dict()
    return event


class EventLogger:
    def __init__(self, log_dir: str,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        """
        Create the log directory and open today's file.

        Raises:
            OSError: directory or file cannot be created
        """
        self.log_dir = log_dir
        self._clock = clock
        self._lock = threading.Lock()
        self._file = None
        self._date = None

        os.makedirs(log_dir, mode=0o755, exist_ok=True)
        with self._lock:
            self._rotate_if_needed()
        logger.info(f"[EventLogger] Writing events to {self.current_path}")

    @property
    def current_path(self) -> Optional[str]:
        if self._date is None:
            return None
        return os.path.join(self.log_dir, log_file_name(self._date))

    def log_sample(self, snapshot: MetricsSnapshot):
        self._log('sample', 'sample', None, snapshot)

    def log_spike(self, snapshot: MetricsSnapshot, reasons: List[str]):
        self._log('spike', event_metric(reasons), reasons, snapshot)

    def log_alert(self, snapshot: MetricsSnapshot, reasons: List[str]):
        self._log('alert', event_metric(reasons), reasons, snapshot)

    def close(self):
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None
                logger.info("[EventLogger] Closed event log")

    def _log(self, event_type, metric, reasons, snapshot):
        with self._lock:
            self._rotate_if_needed()
            line = json.dumps(build_event(event_type, metric, reasons, snapshot),
                              ensure_ascii=False)
            self._file.write(line + '\n')
            self._file.flush()

    def _rotate_if_needed(self):
        """Switch to today's file when the UTC date has changed. Caller holds the lock."""
        current_date = self._clock().astimezone(timezone.utc).strftime('%Y-%m-%d')

        if self._file is not None and self._date == current_date:
            return

        path = os.path.join(self.log_dir, log_file_name(current_date))
        fd = os.open(path, os.O_CREAT | os.O_WRONLY | os.O_APPEND, 0o644)
        new_file = os.fdopen(fd, 'a', encoding='utf-8')

        if self._file is not None:
            self._file.close()
            logger.info(f"[EventLogger] Rotated to {path}")

        self._file = new_file
        self._date = current_date
