"""
logdeck_config.py — runtime configuration

Defaults live on LoggerConfig. A JSON file (first match of: explicit path,
./logdeck.json, ~/.config/logdeck/config.json) and LOGDECK_* environment
variables are layered on top. Anything unreadable is reported on stderr and
skipped; configuration never stops the logger from starting.
"""

import json
import os
import sys
from dataclasses import dataclass, fields, replace
from pathlib import Path

CONFIG_FILENAME = 'logdeck.json'
USER_CONFIG     = Path('~/.config/logdeck/config.json')

# env var -> LoggerConfig field
_ENV = {
    'LOGDECK_MAX_ENTRIES': 'max_log_entries',
    'LOGDECK_CIRCULAR':    'circular_buffer',
    'LOGDECK_REFRESH':     'refresh_interval',
}

_TRUE  = {'1', 'true', 'yes', 'on'}
_FALSE = {'0', 'false', 'no', 'off'}


def _warn(msg: str) -> None:
    print(f'[logdeck warn] {msg}', file=sys.stderr)


@dataclass(frozen=True)
class LoggerConfig:
    max_log_entries:   int = 1000
    circular_buffer:   bool = True
    default_producer:  str | None = None
    capture_locations: bool = True
    show_file_paths:   bool = True
    refresh_interval:  float = 2.0

    def __post_init__(self):
        if self.max_log_entries <= 0:
            raise ValueError(f'max_log_entries must be > 0, got {self.max_log_entries}')
        if self.refresh_interval <= 0:
            raise ValueError(f'refresh_interval must be > 0, got {self.refresh_interval}')

    def copy_with(self, **changes) -> 'LoggerConfig':
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


_FIELD_TYPES = {f.name: f.type for f in fields(LoggerConfig)}


def _coerce(name: str, value):
    # Convert a raw JSON/env value to the field's type; raises ValueError.
    kind = _FIELD_TYPES[name]
    if kind in (bool, 'bool'):
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(f'not a boolean: {value!r}')
    if kind in (int, 'int'):
        if isinstance(value, bool):
            raise ValueError(f'not an integer: {value!r}')
        return int(value)
    if kind in (float, 'float'):
        return float(value)
    if value is None:
        return None
    return str(value)


def _candidates(path) -> list:
    if path is not None:
        return [Path(path)]
    return [Path.cwd() / CONFIG_FILENAME, USER_CONFIG.expanduser()]


def _read_file(path: Path) -> dict:
    try:
        with open(path, encoding='utf-8') as fh:
            data = json.load(fh)
    except (OSError, ValueError) as exc:
        _warn(f'{path}: {exc}')
        return {}
    if not isinstance(data, dict):
        _warn(f'{path}: expected a JSON object, got {type(data).__name__}')
        return {}
    return data


def _apply(values: dict, raw: dict, origin: str) -> None:
    for key, val in raw.items():
        if key not in _FIELD_TYPES:
            _warn(f'{origin}: unknown setting {key!r} ignored')
            continue
        try:
            values[key] = _coerce(key, val)
        except (TypeError, ValueError) as exc:
            _warn(f'{origin}: {key}: {exc}')


def load_config(path=None, overrides: dict | None = None) -> LoggerConfig:
    values: dict = {}

    for candidate in _candidates(path):
        if candidate.is_file():
            _apply(values, _read_file(candidate), candidate.name)
            break
        if path is not None:
            _warn(f'{candidate}: config file not found, using defaults')

    env_raw = {field: os.environ[var] for var, field in _ENV.items()
               if os.environ.get(var)}
    _apply(values, env_raw, 'environment')

    if overrides:
        _apply(values, {k: v for k, v in overrides.items() if v is not None},
               'overrides')

    try:
        return LoggerConfig(**values)
    except ValueError as exc:
        _warn(f'{exc}; using defaults')
        return LoggerConfig()
