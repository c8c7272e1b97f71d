from __future__ import annotations

import logging

import pytest

from logdeck_handler import SubsystemHandler, install_handler, map_level


@pytest.fixture
def app_logger(sub):
    logger = logging.getLogger("logdeck.tests.app")
    logger.propagate = False
    handler = install_handler(sub, logger)
    yield logger
    logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.mark.parametrize(
    "levelno, expected",
    [
        (logging.DEBUG, "debug"),
        (logging.INFO, "info"),
        (logging.WARNING, "warning"),
        (logging.ERROR, "error"),
        (logging.CRITICAL, "error"),
        (5, "debug"),
    ],
)
def test_map_level(levelno, expected):
    assert map_level(levelno) == expected


def test_install_returns_attached_handler(sub, app_logger):
    handlers = [h for h in app_logger.handlers if isinstance(h, SubsystemHandler)]
    assert len(handlers) == 1
    assert handlers[0].subsystem is sub
    assert app_logger.level == logging.DEBUG


def test_records_become_general_logs(sub, app_logger):
    app_logger.warning("disk at %d%%", 91)
    (rec,) = sub.get_unified_logs()
    assert rec.producer == "general"
    assert rec.level == "warning"
    assert rec.message == "disk at 91%"
    assert rec.source_name == "logdeck.tests.app"
    assert rec.file_key.endswith("test_handler.py")


def test_exc_info_becomes_stack_trace(sub, app_logger):
    try:
        1 / 0
    except ZeroDivisionError:
        app_logger.exception("math broke")
    (rec,) = sub.get_unified_logs()
    assert rec.level == "error"
    assert "ZeroDivisionError" in rec.stack_trace


def test_paused_subsystem_drops_logging_records(sub, app_logger):
    sub.set_paused(True)
    app_logger.error("ignored")
    assert sub.get_unified_logs() == []
