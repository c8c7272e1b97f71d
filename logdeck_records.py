"""
logdeck_records.py — unified log record, producer vocabularies, API payload

Every producer (general app logs, HTTP exchanges, anything registered later)
is normalised into one frozen LogRecord. Producer specific data rides along
as a tagged payload, never as a subclass.
"""

import json
import re
import shlex
from dataclasses import dataclass
from datetime import datetime

UNKNOWN_PATH = 'unknown'

GENERAL = 'general'
API     = 'api'

GENERAL_LEVELS = ('debug', 'info', 'warning', 'error')
API_TYPES      = ('success', 'redirect', 'client_error',
                  'server_error', 'network_error', 'pending')

# Display labels for every known level/type key
LEVEL_LABELS = {
    'debug':         'DEBUG',
    'info':          'INFO',
    'warning':       'WARNING',
    'error':         'ERROR',
    'success':       'SUCCESS',
    'redirect':      'REDIRECT',
    'client_error':  'CLIENT ERROR',
    'server_error':  'SERVER ERROR',
    'network_error': 'NETWORK ERROR',
    'pending':       'PENDING',
}


# Producer registry

class ProducerSpec:
    def __init__(self, name: str, levels: tuple, error_levels: tuple,
                 label: str = ''):
        self.name         = name
        self.levels       = tuple(levels)
        self.error_levels = frozenset(error_levels)
        self.label        = label or name.title()


_PRODUCERS: dict = {}


def register_producer(name: str, levels, error_levels=(), label: str = '') -> ProducerSpec:
    # Add a producer vocabulary. Registering a name twice is a programmer error.
    if name in _PRODUCERS:
        raise ValueError(f'producer {name!r} is already registered')
    if not levels:
        raise ValueError(f'producer {name!r} needs at least one level')
    unknown = set(error_levels) - set(levels)
    if unknown:
        raise ValueError(
            f'producer {name!r}: error levels {sorted(unknown)} not in its levels')
    spec = ProducerSpec(name, levels, error_levels, label)
    _PRODUCERS[name] = spec
    return spec


def producer_spec(name: str) -> ProducerSpec:
    try:
        return _PRODUCERS[name]
    except KeyError:
        raise ValueError(f'unknown producer {name!r}') from None


def producers() -> list:
    # Registered producer names in registration order.
    return list(_PRODUCERS)


def level_label(level: str) -> str:
    return LEVEL_LABELS.get(level, level.replace('_', ' ').upper())


register_producer(GENERAL, GENERAL_LEVELS, ('error',), label='Logger Logs')
register_producer(API, API_TYPES,
                  ('client_error', 'server_error', 'network_error'),
                  label='API Logs')


# Body / header formatting

def format_body(value) -> str:
    """
    Pretty-print a request/response body for display.
    JSON text, dicts and lists come back indented; anything that is not
    valid JSON is returned as plain text. Never raises.
    """
    if value is None:
        return ''
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode('utf-8', errors='replace')
    if isinstance(value, (dict, list)):
        try:
            return json.dumps(value, indent=2, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return str(value)
    text = str(value)
    stripped = text.strip()
    if not stripped or stripped[0] not in '{[':
        return text
    try:
        parsed = json.loads(stripped)
    except ValueError:
        return text
    return json.dumps(parsed, indent=2, ensure_ascii=False)


def format_headers(headers) -> str:
    if not headers:
        return ''
    if isinstance(headers, str):
        return headers
    return '\n'.join(f'{k}: {v}' for k, v in sorted(headers.items(),
                                                   key=lambda kv: str(kv[0]).lower()))


def classify_api_type(status_code, error=None) -> str:
    # Map an HTTP exchange outcome to an api type key.
    if status_code is None:
        return 'network_error' if error else 'pending'
    if status_code < 300:
        return 'success'
    if status_code < 400:
        return 'redirect'
    if status_code < 500:
        return 'client_error'
    return 'server_error'


# Payload

@dataclass(frozen=True)
class ApiPayload:
    method:           str
    url:              str
    status_code:      int | None = None
    duration_ms:      float | None = None
    request_headers:  str = ''
    request_body:     str = ''
    response_headers: str = ''
    response_body:    str = ''
    error:            str | None = None

    @property
    def status_class(self) -> str | None:
        if self.status_code is None:
            return None
        return f'{self.status_code // 100}xx'

    @property
    def curl(self) -> str:
        # Reproduce the request as a shell command.
        parts = ['curl', '-X', self.method.upper()]
        for line in self.request_headers.splitlines():
            if ':' in line:
                parts += ['-H', line.strip()]
        if self.request_body:
            parts += ['-d', self.request_body]
        parts.append(self.url)
        return ' '.join(shlex.quote(p) for p in parts)


# Record

_RE_LINE_SUFFIX = re.compile(r'(?::\d+){1,2}$')


@dataclass(frozen=True)
class LogRecord:
    id:          int
    producer:    str
    level:       str
    message:     str
    timestamp:   datetime
    source_name: str | None = None
    file_path:   str = UNKNOWN_PATH
    stack_trace: str | None = None
    payload:     ApiPayload | None = None

    @property
    def is_error(self) -> bool:
        return self.level in producer_spec(self.producer).error_levels

    @property
    def file_key(self) -> str:
        # File path without its trailing :line[:col]
        return _RE_LINE_SUFFIX.sub('', self.file_path)

    @property
    def class_keys(self) -> tuple:
        # Every value the union (class) facet knows this record by:
        # its explicit tag and its calling file, whichever are present.
        keys = []
        if self.source_name:
            keys.append(self.source_name)
        if self.file_path != UNKNOWN_PATH:
            path = self.file_key
            if path not in keys:
                keys.append(path)
        return tuple(keys)

    @property
    def url(self) -> str | None:
        return self.payload.url if self.payload is not None else None

    @property
    def subtitle(self) -> str:
        # One-line origin shown under the message in the viewer.
        if self.source_name:
            return self.source_name
        return self.file_path
