#!/usr/bin/env python3
"""
Tests for the NDJSON event logger
"""

import json
import os
import stat
from datetime import datetime, timezone

import pytest

from event_logger import EventLogger, event_metric
from snapshot import MetricsSnapshot


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def make_snapshot(ts=datetime(2024, 3, 9, 10, 15, 30, 250000, tzinfo=timezone.utc)):
    return MetricsSnapshot(
        timestamp=ts,
        cpu_usage_percent=42.5,
        mem_used_percent=61.25,
        mem_used_bytes=5 * 1024 ** 3,
        mem_total_bytes=8 * 1024 ** 3,
        net_interface='eth0',
        net_rx_bytes_per_sec=125000.0,
        net_tx_bytes_per_sec=62500.0,
        net_rx_mbps=1.0,
        net_tx_mbps=0.5,
    )


def read_events(path):
    with open(path, encoding='utf-8') as f:
        return [json.loads(line) for line in f]


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 9, 10, 15, 31, tzinfo=timezone.utc))


@pytest.fixture
def event_logger(tmp_path, clock):
    el = EventLogger(str(tmp_path / 'logs'), clock=clock)
    yield el
    el.close()


def test_creates_dir_and_today_file(tmp_path, event_logger):
    path = tmp_path / 'logs' / 'metrics-2024-03-09.ndjson'
    assert path.exists()
    assert event_logger.current_path == str(path)


def test_file_mode_is_0644(tmp_path, event_logger):
    old_umask = os.umask(0)
    os.umask(old_umask)
    mode = stat.S_IMODE(os.stat(event_logger.current_path).st_mode)
    assert mode == 0o644 & ~old_umask


def test_sample_event_shape(event_logger):
    event_logger.log_sample(make_snapshot())

    events = read_events(event_logger.current_path)
    assert len(events) == 1
    event = events[0]
    assert event['type'] == 'sample'
    assert event['metric'] == 'sample'
    assert 'reasons' not in event
    assert event['timestamp'] == '2024-03-09T10:15:30Z'
    assert list(event['metrics'].keys()) == [
        'Timestamp', 'CPUUsagePercent', 'MemUsedPercent', 'MemUsedBytes', 'MemTotalBytes',
        'NetInterface', 'NetRxBytesPS', 'NetTxBytesPS', 'NetRxMbps', 'NetTxMbps',
    ]


def test_single_reason_alert(event_logger):
    event_logger.log_alert(make_snapshot(), ['cpu'])

    event = read_events(event_logger.current_path)[0]
    assert event['type'] == 'alert'
    assert event['metric'] == 'cpu'
    assert event['reasons'] == ['cpu']


def test_multi_reason_alert(event_logger):
    event_logger.log_alert(make_snapshot(), ['cpu', 'network'])

    event = read_events(event_logger.current_path)[0]
    assert event['metric'] == 'multi'
    assert event['reasons'] == ['cpu', 'network']


def test_spike_event(event_logger):
    event_logger.log_spike(make_snapshot(), ['memory'])

    event = read_events(event_logger.current_path)[0]
    assert event['type'] == 'spike'
    assert event['metric'] == 'memory'


def test_metrics_round_trip(event_logger):
    """An event read back yields the same snapshot fields"""
    original = make_snapshot()
    event_logger.log_sample(original)

    event = read_events(event_logger.current_path)[0]
    assert MetricsSnapshot.from_dict(event['metrics']) == original


def test_events_append_in_call_order(event_logger):
    snap = make_snapshot()
    event_logger.log_spike(snap, ['cpu'])
    event_logger.log_alert(snap, ['cpu'])
    event_logger.log_sample(snap)

    types = [e['type'] for e in read_events(event_logger.current_path)]
    assert types == ['spike', 'alert', 'sample']


def test_rotates_on_utc_date_change(tmp_path, clock, event_logger):
    event_logger.log_sample(make_snapshot())

    clock.now = datetime(2024, 3, 10, 0, 0, 1, tzinfo=timezone.utc)
    next_day = make_snapshot(ts=datetime(2024, 3, 10, 0, 0, 0, tzinfo=timezone.utc))
    event_logger.log_sample(next_day)

    day1 = read_events(tmp_path / 'logs' / 'metrics-2024-03-09.ndjson')
    day2 = read_events(tmp_path / 'logs' / 'metrics-2024-03-10.ndjson')
    assert len(day1) == 1
    assert len(day2) == 1
    assert day2[0]['timestamp'].startswith('2024-03-10')
    assert event_logger.current_path.endswith('metrics-2024-03-10.ndjson')


def test_existing_file_is_appended_not_truncated(tmp_path, clock):
    first = EventLogger(str(tmp_path), clock=clock)
    first.log_sample(make_snapshot())
    first.close()

    second = EventLogger(str(tmp_path), clock=clock)
    second.log_sample(make_snapshot())
    second.close()

    assert len(read_events(tmp_path / 'metrics-2024-03-09.ndjson')) == 2


def test_unwritable_dir_raises(tmp_path, clock):
    blocker = tmp_path / 'not-a-dir'
    blocker.write_text('x')
    with pytest.raises(OSError):
        EventLogger(str(blocker / 'logs'), clock=clock)


def test_event_metric_helper():
    assert event_metric(['network']) == 'network'
    assert event_metric(['cpu', 'memory']) == 'multi'
