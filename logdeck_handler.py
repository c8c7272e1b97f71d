"""
logdeck_handler.py — route stdlib `logging` into a LogSubsystem

    sub = LogSubsystem()
    install_handler(sub)                 # root logger
    logging.getLogger('app.db').warning('slow query')

Each logging.LogRecord becomes a general-producer record with the logger
name as its source and pathname:lineno as its file path.
"""

import logging
from datetime import datetime

from logdeck_records import GENERAL


def map_level(levelno: int) -> str:
    if levelno >= logging.ERROR:
        return 'error'
    if levelno >= logging.WARNING:
        return 'warning'
    if levelno >= logging.INFO:
        return 'info'
    return 'debug'


class SubsystemHandler(logging.Handler):
    def __init__(self, subsystem, level: int = logging.NOTSET) -> None:
        super().__init__(level=level)
        self.subsystem = subsystem

    def emit(self, record: logging.LogRecord) -> None:
        try:
            trace = None
            if record.exc_info:
                trace = self.formatException(record.exc_info)
            elif record.stack_info:
                trace = record.stack_info
            self.subsystem.append(
                GENERAL, map_level(record.levelno), record.getMessage(),
                source_name = record.name,
                file_path   = f'{record.pathname}:{record.lineno}',
                stack_trace = trace,
                timestamp   = datetime.fromtimestamp(record.created),
            )
        except Exception:
            self.handleError(record)

    def formatException(self, exc_info) -> str:
        fmt = self.formatter or logging.Formatter()
        return fmt.formatException(exc_info)


def install_handler(subsystem, logger: logging.Logger | None = None,
                    level: int = logging.DEBUG) -> SubsystemHandler:
    target  = logger if logger is not None else logging.getLogger()
    handler = SubsystemHandler(subsystem, level=level)
    target.addHandler(handler)
    if target.level == logging.NOTSET or target.level > level:
        target.setLevel(level)
    return handler
