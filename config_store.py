#!/usr/bin/env python3
"""
Configuration Store Module
YAML configuration loading, defaults and validation
"""

import copy
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger('system-sentinel.config')

DEFAULT_CONFIG_PATH = '/etc/system-sentinel/config.yaml'

# Defaults applied under whatever the config file provides
DEFAULT_CONFIG = {
    'sample_interval_sec': 1,
    'collection_interval_sec': 60,
    'log_dir': '/var/log/system-sentinel',
    'retention_days': 30,
    'interface': 'eth0',
    'spikes': {
        'cpu': {
            'enabled': False,
            'absolute_threshold': 80.0,
            'relative_threshold': 50.0,
        },
        'memory': {
            'enabled': False,
            'absolute_threshold': 85.0,
            'relative_threshold': 20.0,
        },
        'network': {
            'enabled': False,
            'rx_mbps_threshold': 500.0,
            'tx_mbps_threshold': 500.0,
            'relative_threshold': 200.0,
        },
    },
    'alerts': {
        'cpu': {
            'enabled': False,
            'absolute_threshold': 95.0,
            'relative_threshold': 0.0,
        },
        'memory': {
            'enabled': False,
            'absolute_threshold': 95.0,
        },
        'network': {
            'enabled': False,
            'rx_mbps_threshold': 900.0,
            'tx_mbps_threshold': 900.0,
        },
    },
    'scripts': {
        'enabled': False,
        'dir': '/etc/system-sentinel/sh',
        'env_file': '/etc/system-sentinel/.env',
        'debounce_sec': 60,
        'timeout_sec': 30,
    },
    # Extra variables exported to every script round
    'env': {},
    'logging': {
        'level': 'INFO',
        'file': '/var/log/system-sentinel/system-sentinel.log',
        'max_bytes': 10485760,  # 10MB
        'backup_count': 5,
    },
}

POSITIVE_INTS = (
    'sample_interval_sec',
    'collection_interval_sec',
    'retention_days',
    'scripts.debounce_sec',
    'scripts.timeout_sec',
    'logging.max_bytes',
)

FLOATS = (
    'spikes.cpu.absolute_threshold',
    'spikes.cpu.relative_threshold',
    'spikes.memory.absolute_threshold',
    'spikes.memory.relative_threshold',
    'spikes.network.rx_mbps_threshold',
    'spikes.network.tx_mbps_threshold',
    'spikes.network.relative_threshold',
    'alerts.cpu.absolute_threshold',
    'alerts.cpu.relative_threshold',
    'alerts.memory.absolute_threshold',
    'alerts.network.rx_mbps_threshold',
    'alerts.network.tx_mbps_threshold',
)

BOOLS = (
    'spikes.cpu.enabled',
    'spikes.memory.enabled',
    'spikes.network.enabled',
    'alerts.cpu.enabled',
    'alerts.memory.enabled',
    'alerts.network.enabled',
    'scripts.enabled',
)

NON_EMPTY_STRINGS = (
    'interface',
    'log_dir',
    'scripts.dir',
    'scripts.env_file',
)

ENV_NAME_PATTERN = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')


class ConfigError(Exception):
    """Configuration could not be loaded or is invalid"""


class ConfigStore:
    """Merged configuration with dot-notation access"""

    def __init__(self, overrides: Optional[Dict[str, Any]] = None, path: Optional[str] = None):
        self.path = path
        self.config = copy.deepcopy(DEFAULT_CONFIG)
        if overrides:
            self._deep_merge(self.config, overrides)
        self._normalize()
        self.validate()

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation path
        Example: get('alerts.cpu.absolute_threshold')
        """
        value = self.config
        for key in key_path.split('.'):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def section(self, key_path: str) -> Dict[str, Any]:
        """Return a copy of a nested section, e.g. section('spikes.cpu')"""
        value = self.get(key_path, {})
        if not isinstance(value, dict):
            return {}
        return dict(value)

    def set(self, key_path: str, value: Any):
        keys = key_path.split('.')
        config = self.config
        for key in keys[:-1]:
            if not isinstance(config.get(key), dict):
                config[key] = {}
            config = config[key]
        config[keys[-1]] = value

    @property
    def sample_interval(self) -> float:
        return float(self.get('sample_interval_sec'))

    @property
    def collection_interval(self) -> float:
        return float(self.get('collection_interval_sec'))

    def get_all(self) -> dict:
        return copy.deepcopy(self.config)

    def validate(self):
        """Raise ConfigError on the first invalid option"""
        for key in POSITIVE_INTS:
            if self.get(key) <= 0:
                raise ConfigError(f"{key} must be positive")
        for key in NON_EMPTY_STRINGS:
            if not self.get(key):
                raise ConfigError(f"{key} cannot be empty")
        env = self.get('env')
        if not isinstance(env, dict):
            raise ConfigError("env must be a mapping")
        for name, value in env.items():
            if not ENV_NAME_PATTERN.fullmatch(name):
                raise ConfigError(f"env: invalid variable name {name!r}")
            if '\0' in value:
                raise ConfigError(f"env: {name} contains a NUL byte")

    def _normalize(self):
        """Coerce scalar types; YAML hands back whatever the user wrote"""
        for key in POSITIVE_INTS + ('logging.backup_count',):
            self.set(key, self._coerce(key, int))
        for key in FLOATS:
            self.set(key, self._coerce(key, float))
        for key in BOOLS:
            value = self.get(key)
            if not isinstance(value, bool):
                raise ConfigError(f"{key} must be true or false, got {value!r}")
        for key in NON_EMPTY_STRINGS:
            value = self.get(key)
            self.set(key, '' if value is None else str(value))

        env = self.get('env')
        if env is None:
            self.set('env', {})
        elif isinstance(env, dict):
            self.set('env', {str(k): '' if v is None else str(v) for k, v in env.items()})

    def _coerce(self, key_path: str, kind):
        value = self.get(key_path)
        if isinstance(value, bool):
            raise ConfigError(f"{key_path} must be a number, got {value!r}")
        if kind is int and isinstance(value, int):
            return value
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{key_path} must be a number, got {value!r}")
        if kind is float:
            return number
        # 1.5 seconds is an error, not 1
        if not number.is_integer():
            raise ConfigError(f"{key_path} must be an integer, got {value!r}")
        return int(number)

    def _deep_merge(self, base: dict, updates: dict):
        """Deep merge updates into base dictionary"""
        for key, value in updates.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value


def load_config(path: str = DEFAULT_CONFIG_PATH) -> ConfigStore:
    """
    Load and validate a YAML config file.

    Raises:
        ConfigError: file missing/unreadable, bad YAML, or invalid values
    """
    if not path:
        raise ConfigError("config path is required")

    config_file = Path(path)
    try:
        with open(config_file, 'r') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"failed to read config: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse config: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("failed to parse config: top level must be a mapping")

    store = ConfigStore(overrides=data, path=str(config_file))
    logger.info(f"[Config] Loaded configuration from {config_file}")
    return store
