"""
logdeck_store.py — bounded per-producer storage and the logging subsystem

BoundedStore keeps one producer's records newest-first under a fixed
capacity. LogSubsystem owns one store per producer, the process-wide
pause/storage switches they share, the record id sequence, and the
producer front-ends (general logger, API logger) that build records.
"""

import itertools
import os
import sys
import threading
import traceback
from collections import deque
from datetime import datetime, timedelta

from logdeck_config import LoggerConfig
from logdeck_merge import unify
from logdeck_records import (
    API, GENERAL, UNKNOWN_PATH, ApiPayload, LogRecord,
    classify_api_type, format_body, format_headers, producer_spec, producers,
)


class LogSwitches:
    # Pause / storage flags shared by every store of one subsystem.
    # Plain attribute writes; each read or write is atomic under the GIL.

    def __init__(self):
        self.paused          = False
        self.storage_enabled = True

    def accepting(self) -> bool:
        return self.storage_enabled and not self.paused


# Bounded Store

class BoundedStore:
    # All mutations go through here. Enforces len(items) <= capacity.

    def __init__(self, capacity: int, circular: bool = True,
                 switches: LogSwitches | None = None):
        if capacity <= 0:
            raise ValueError(f'capacity must be > 0, got {capacity}')
        self._items: deque = deque()     # left = newest, right = oldest
        self._capacity     = capacity
        self._circular     = circular
        self._switches     = switches if switches is not None else LogSwitches()
        self._lock         = threading.Lock()

    # Size / access

    def __len__(self) -> int:
        return len(self._items)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def circular(self) -> bool:
        return self._circular

    @property
    def switches(self) -> LogSwitches:
        return self._switches

    def accepting(self) -> bool:
        # True when an append right now would be stored.
        if not self._switches.accepting():
            return False
        return self._circular or len(self._items) < self._capacity

    def get_all(self) -> list:
        # Newest-first snapshot; callers may mutate it freely.
        with self._lock:
            return list(self._items)

    # Mutation

    def append(self, record) -> None:
        if not self._switches.accepting():
            return
        with self._lock:
            if not self._circular and len(self._items) >= self._capacity:
                return
            self._items.appendleft(record)
            while len(self._items) > self._capacity:
                self._items.pop()

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def set_capacity(self, n: int) -> None:
        if n <= 0:
            raise ValueError(f'capacity must be > 0, got {n}')
        with self._lock:
            self._capacity = n
            while len(self._items) > n:
                self._items.pop()

    def set_circular(self, circular: bool) -> None:
        self._circular = bool(circular)


# Caller location

_OWN_FILES = ('logdeck_store.py',)


def caller_location(skip: int = 2) -> str:
    # First frame outside this module as "path:line", relative to cwd when under it.
    try:
        frame = sys._getframe(skip)
    except ValueError:
        return UNKNOWN_PATH
    while frame is not None:
        fname = frame.f_code.co_filename
        if os.path.basename(fname) not in _OWN_FILES:
            path = fname
            try:
                rel = os.path.relpath(fname)
                if not rel.startswith('..'):
                    path = rel
            except ValueError:       # different drive on Windows
                pass
            return f'{path}:{frame.f_lineno}'
        frame = frame.f_back
    return UNKNOWN_PATH


def format_exception(error: BaseException) -> str:
    return ''.join(traceback.format_exception(type(error), error,
                                              error.__traceback__)).rstrip('\n')


# Producer front-ends

class ScopedLogger:
    # General logger that tags every record with one source name.

    def __init__(self, source: str, logger: 'GeneralLogger'):
        self.source  = source
        self._logger = logger

    def debug(self, message: str) -> None:
        self._logger._log('debug', message, self.source)

    def info(self, message: str) -> None:
        self._logger._log('info', message, self.source)

    def warning(self, message: str) -> None:
        self._logger._log('warning', message, self.source)

    def error(self, message: str, error: BaseException | None = None) -> None:
        self._logger.error(message, error=error, source=self.source)


class GeneralLogger:
    """
    Front-end for the general producer.

        log = subsystem.general.scoped('AuthService')
        log.info('user logged in')
        log.error('token refresh failed', error=exc)
    """

    def __init__(self, subsystem: 'LogSubsystem'):
        self._subsystem = subsystem

    def scoped(self, source: str) -> ScopedLogger:
        return ScopedLogger(source, self)

    def debug(self, message: str, source: str | None = None) -> None:
        self._log('debug', message, source)

    def info(self, message: str, source: str | None = None) -> None:
        self._log('info', message, source)

    def warning(self, message: str, source: str | None = None) -> None:
        self._log('warning', message, source)

    def error(self, message: str, error: BaseException | None = None,
              source: str | None = None) -> None:
        trace = format_exception(error) if error is not None else None
        self._log('error', message, source, stack_trace=trace)

    def _log(self, level, message, source, stack_trace=None) -> None:
        sub = self._subsystem
        if not sub.store(GENERAL).accepting():
            return
        path = caller_location(3) if sub.config.capture_locations else UNKNOWN_PATH
        sub.append(GENERAL, level, message, source_name=source,
                   file_path=path, stack_trace=stack_trace)


class ApiLogger:
    # Front-end for the api producer: one record per HTTP exchange.

    def __init__(self, subsystem: 'LogSubsystem'):
        self._subsystem = subsystem

    def log_exchange(self, method: str, url: str, status_code: int | None = None,
                     duration_ms: float | None = None,
                     request_headers=None, request_body=None,
                     response_headers=None, response_body=None,
                     error: str | None = None, source: str | None = None) -> None:
        sub = self._subsystem
        if not sub.store(API).accepting():
            return
        payload = ApiPayload(
            method           = method.upper(),
            url              = url,
            status_code      = status_code,
            duration_ms      = duration_ms,
            request_headers  = format_headers(request_headers),
            request_body     = format_body(request_body),
            response_headers = format_headers(response_headers),
            response_body    = format_body(response_body),
            error            = str(error) if error is not None else None,
        )
        kind = classify_api_type(status_code, error)
        path = caller_location(2) if sub.config.capture_locations else UNKNOWN_PATH
        sub.append(API, kind, api_message(payload), source_name=source,
                   file_path=path, payload=payload)


def api_message(payload: ApiPayload) -> str:
    if payload.status_code is not None:
        outcome = str(payload.status_code)
    elif payload.error:
        outcome = f'failed: {payload.error}'
    else:
        outcome = 'pending'
    msg = f'{payload.method} {payload.url} → {outcome}'
    if payload.duration_ms is not None:
        msg += f' ({payload.duration_ms:.0f} ms)'
    return msg


# Subsystem

class LogSubsystem:
    """
    Owns every store of the process (or of one test). Pass the instance to
    producers and viewers explicitly; nothing here is a module global.
    """

    def __init__(self, config: LoggerConfig | None = None, clock=None):
        self.config     = config or LoggerConfig()
        self._clock     = clock or datetime.now
        self._ids       = itertools.count(1)
        self._id_lock   = threading.Lock()
        self._switches  = LogSwitches()
        self._stores: dict = {}
        self._listeners: list = []
        for name in producers():
            self.store(name)
        self.general = GeneralLogger(self)
        self.api     = ApiLogger(self)

    # Stores

    def store(self, producer: str) -> BoundedStore:
        st = self._stores.get(producer)
        if st is None:
            producer_spec(producer)           # raises for unknown producers
            st = BoundedStore(self.config.max_log_entries,
                              circular=self.config.circular_buffer,
                              switches=self._switches)
            self._stores[producer] = st
        return st

    def stores(self) -> list:
        return list(self._stores.values())

    def _next_id(self) -> int:
        with self._id_lock:
            return next(self._ids)

    # Ingestion

    def append(self, producer: str, level: str, message: str,
               source_name: str | None = None, file_path: str | None = None,
               stack_trace: str | None = None, payload=None,
               timestamp: datetime | None = None) -> None:
        spec = producer_spec(producer)
        if level not in spec.levels:
            raise ValueError(f'unknown level {level!r} for producer {producer!r}')
        st = self.store(producer)
        if not st.accepting():
            return
        st.append(LogRecord(
            id          = self._next_id(),
            producer    = producer,
            level       = level,
            message     = str(message),
            timestamp   = timestamp or self._clock(),
            source_name = source_name or None,
            file_path   = file_path or UNKNOWN_PATH,
            stack_trace = stack_trace,
            payload     = payload,
        ))

    # Switches

    @property
    def is_paused(self) -> bool:
        return self._switches.paused

    @property
    def storage_enabled(self) -> bool:
        return self._switches.storage_enabled

    def set_paused(self, paused: bool) -> None:
        paused = bool(paused)
        if paused == self._switches.paused:
            return
        self._switches.paused = paused
        self._notify()

    def set_storage_enabled(self, enabled: bool) -> None:
        enabled = bool(enabled)
        if enabled == self._switches.storage_enabled:
            return
        self._switches.storage_enabled = enabled
        self._notify()

    def set_capacity(self, n: int) -> None:
        for st in self._stores.values():
            st.set_capacity(n)
        self.config = self.config.copy_with(max_log_entries=n)
        self._notify()

    def set_circular(self, circular: bool) -> None:
        for st in self._stores.values():
            st.set_circular(circular)
        self.config = self.config.copy_with(circular_buffer=bool(circular))
        self._notify()

    def configure(self, config: LoggerConfig) -> None:
        self.config = config
        for st in self._stores.values():
            st.set_capacity(config.max_log_entries)
            st.set_circular(config.circular_buffer)
        self._notify()

    # Queries

    def get_unified_logs(self) -> list:
        return unify(self._stores.values())

    def recent_logs(self, duration, producer: str | None = None) -> list:
        # Newest-first records no older than `duration` (timedelta or seconds).
        if not isinstance(duration, timedelta):
            duration = timedelta(seconds=duration)
        cutoff = self._clock() - duration
        stores = [self.store(producer)] if producer is not None else self._stores.values()
        return [r for r in unify(stores) if r.timestamp >= cutoff]

    def clear_logs(self, producer: str) -> None:
        self.store(producer).clear()
        self._notify()

    def clear_all_logs(self) -> None:
        for st in self._stores.values():
            st.clear()
        self._notify()

    def counts(self) -> dict:
        api_logs = self.store(API).get_all()
        general  = len(self.store(GENERAL))
        return {
            'general':    general,
            'api':        len(api_logs),
            'api_errors': sum(1 for r in api_logs if r.is_error),
            'total':      sum(len(st) for st in self._stores.values()),
        }

    # Listeners

    def add_listener(self, callback) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback) -> None:
        try:
            self._listeners.remove(callback)
        except ValueError:
            pass

    def _notify(self) -> None:
        for cb in list(self._listeners):
            cb()
