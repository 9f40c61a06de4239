"""
Agent configuration.

Values come from the environment, optionally seeded from the ``agent:``
section of a YAML file:

    agent:
      monitoring_center_url: http://monitoring:8080
      host_id: 6f1c2a0e-...
      polling_interval: 5m
      request_timeout: 30s

Environment variables (MONITORING_CENTER_URL, HOST_ID, POLLING_INTERVAL,
REQUEST_TIMEOUT) take precedence over the file.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import yaml

from metrics_agent.errors import ConfigError

DEFAULT_MONITORING_CENTER_URL = 'http://localhost:8080'
DEFAULT_POLLING_INTERVAL = 5 * 60
DEFAULT_REQUEST_TIMEOUT = 30

ENV_KEYS = {
    'monitoring_center_url': 'MONITORING_CENTER_URL',
    'host_id': 'HOST_ID',
    'polling_interval': 'POLLING_INTERVAL',
    'request_timeout': 'REQUEST_TIMEOUT',
}

_DURATION_UNITS = {'ms': 0.001, 's': 1, 'm': 60, 'h': 3600}
_DURATION_PART = re.compile(r'(\d+(?:\.\d+)?)(ms|s|m|h)')


@dataclass
class AgentConfig:
    host_id: str
    monitoring_center_url: str = DEFAULT_MONITORING_CENTER_URL
    polling_interval: float = DEFAULT_POLLING_INTERVAL  # seconds
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT  # seconds


def parse_duration(value) -> float:
    """
    Parse a duration into seconds.

    Accepts plain numbers (seconds) and Go-style strings such as
    '30s', '5m', '1h30m' or '500ms'.

    Raises:
        ConfigError: If the value is not a valid non-negative duration
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip().lower()
        try:
            seconds = float(text)
        except ValueError:
            parts = _DURATION_PART.findall(text)
            if not parts or ''.join(n + u for n, u in parts) != text:
                raise ConfigError(f"Invalid duration: {value!r}")
            seconds = sum(float(n) * _DURATION_UNITS[u] for n, u in parts)

    if seconds < 0:
        raise ConfigError(f"Duration must not be negative: {value!r}")
    return seconds


def _read_file(path: str) -> dict:
    try:
        with Path(path).open() as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    section = data.get('agent', {}) or {}
    if not isinstance(section, dict):
        raise ConfigError("'agent' section must be a mapping")
    return section


def load_config(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> AgentConfig:
    """
    Load agent configuration from an optional YAML file and the environment.

    Args:
        path: Optional path to a YAML config file
        environ: Environment mapping (default: os.environ)

    Returns:
        AgentConfig with durations in seconds

    Raises:
        ConfigError: If HOST_ID is missing or a value is invalid
    """
    environ = os.environ if environ is None else environ
    values = _read_file(path) if path else {}

    for key, env_name in ENV_KEYS.items():
        if environ.get(env_name):
            values[key] = environ[env_name]

    host_id = str(values.get('host_id') or '').strip()
    if not host_id:
        raise ConfigError("HOST_ID environment variable is required")

    url = str(values.get('monitoring_center_url') or DEFAULT_MONITORING_CENTER_URL).rstrip('/')

    return AgentConfig(
        host_id=host_id,
        monitoring_center_url=url,
        polling_interval=parse_duration(values.get('polling_interval', DEFAULT_POLLING_INTERVAL)),
        request_timeout=parse_duration(values.get('request_timeout', DEFAULT_REQUEST_TIMEOUT)),
    )
