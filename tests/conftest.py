"""Shared fixtures: a deterministic clock, a subsystem and a record factory."""

from __future__ import annotations

import itertools
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# The logdeck modules live flat in the project root.
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from logdeck_config import LoggerConfig  # noqa: E402
from logdeck_records import GENERAL, LogRecord  # noqa: E402
from logdeck_store import LogSubsystem  # noqa: E402

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0)


class TickClock:
    """Returns BASE_TIME, BASE_TIME + 1s, ... on successive calls."""

    def __init__(self, start: datetime = BASE_TIME, step: float = 1.0):
        self._now = start
        self._step = timedelta(seconds=step)

    def __call__(self) -> datetime:
        now = self._now
        self._now += self._step
        return now


@pytest.fixture
def clock() -> TickClock:
    return TickClock()


@pytest.fixture
def sub(clock) -> LogSubsystem:
    return LogSubsystem(LoggerConfig(max_log_entries=50), clock=clock)


@pytest.fixture
def make_record():
    ids = itertools.count(1)

    def _make(message: str = "msg", level: str = "info", producer: str = GENERAL,
              t: float = 0, **kwargs) -> LogRecord:
        kwargs.setdefault("id", next(ids))
        return LogRecord(
            producer=producer,
            level=level,
            message=message,
            timestamp=BASE_TIME + timedelta(seconds=t),
            **kwargs,
        )

    return _make
