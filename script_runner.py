#!/usr/bin/env python3
# script_runner.py
"""
Script Runner
Runs operator-supplied shell scripts when an alert round is admitted.
"""

import logging
import os
import stat
import subprocess
from typing import Dict, List

from event_logger import event_metric
from snapshot import MetricsSnapshot, format_rfc3339

logger = logging.getLogger('system-sentinel.scripts')

BASH = '/bin/bash'


class ScriptError(Exception):
    """A script round could not complete"""

    def __init__(self, message, script=None, exit_code=None):
        super().__init__(message)
        self.script = script
        self.exit_code = exit_code


def build_env(alert_types: List[str], snapshot: MetricsSnapshot) -> Dict[str, str]:
    """Variables describing the alert, floats with two decimals"""
    return {
        'SYS_TIMESTAMP': format_rfc3339(snapshot.timestamp),
        'SYS_EVENT_TYPE': 'alert',
        'SYS_EVENT_METRIC': event_metric(alert_types),
        'SYS_CPU_USAGE': f"{snapshot.cpu_usage_percent:.2f}",
        'SYS_MEM_USED_PERCENT': f"{snapshot.mem_used_percent:.2f}",
        'SYS_MEM_USED_BYTES': str(snapshot.mem_used_bytes),
        'SYS_MEM_TOTAL_BYTES': str(snapshot.mem_total_bytes),
        'SYS_NET_INTERFACE': snapshot.net_interface,
        'SYS_NET_RX_BPS': f"{snapshot.net_rx_bytes_per_sec:.2f}",
        'SYS_NET_TX_BPS': f"{snapshot.net_tx_bytes_per_sec:.2f}",
        'SYS_NET_RX_MBPS': f"{snapshot.net_rx_mbps:.2f}",
        'SYS_NET_TX_MBPS': f"{snapshot.net_tx_mbps:.2f}",
    }


def write_env_file(path: str, env: Dict[str, str]):
    """Truncate and rewrite the env file, one KEY=VALUE per line"""
    with open(path, 'w') as f:
        for key, value in env.items():
            f.write(f"{key}={value}\n")


def find_scripts(directory: str) -> List[str]:
    """Executable *.sh regular files directly inside directory, in listing order"""
    scripts = []
    with os.scandir(directory) as entries:
        for entry in entries:
            if not entry.name.endswith('.sh'):
                continue
            try:
                if not entry.is_file():
                    continue
                mode = entry.stat().st_mode
            except OSError:
                continue
            if not mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH):
                continue
            scripts.append(entry.path)
    return scripts


class ScriptRunner:
    def __init__(self, config):
        self.scripts_dir = config.get('scripts.dir')
        self.env_file = config.get('scripts.env_file')
        self.timeout = config.get('scripts.timeout_sec')
        self.extra_env = dict(config.get('env') or {})

    def execute(self, alert_types: List[str], snapshot: MetricsSnapshot):
        """
        Run one script round.

        Scripts run one after another; the round stops at the first failure.

        Raises:
            ScriptError: env file not writable, scripts dir unreadable,
                non-zero exit or timeout
        """
        env = dict(self.extra_env)
        env.update(build_env(alert_types, snapshot))

        try:
            write_env_file(self.env_file, env)
        except OSError as e:
            raise ScriptError(f"failed to write env file: {e}") from e

        try:
            scripts = find_scripts(self.scripts_dir)
        except OSError as e:
            raise ScriptError(f"failed to find scripts: {e}") from e

        if not scripts:
            logger.info(f"[ScriptRunner] No executable scripts in {self.scripts_dir}")
            return

        process_env = os.environ.copy()
        process_env.update(env)

        for script in scripts:
            self._run_script(script, process_env)

        logger.info(f"[ScriptRunner] ✓ Ran {len(scripts)} script(s) for {alert_types}")

    def _run_script(self, script: str, env: Dict[str, str]):
        logger.info(f"[ScriptRunner] Running {script}")
        try:
            result = subprocess.run(
                [BASH, script],
                env=env,
                timeout=self.timeout,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired:
            raise ScriptError(
                f"script {script} failed: timed out after {self.timeout}s", script=script
            )
        except OSError as e:
            raise ScriptError(f"script {script} failed: {e}", script=script) from e

        if result.returncode != 0:
            raise ScriptError(
                f"script {script} failed: exit code {result.returncode}",
                script=script,
                exit_code=result.returncode,
            )
