"""Logging setup for the fakemachine package.

As a library, fakemachine only attaches a NullHandler; FAKEMACHINE_LOG_LEVEL
sets the package logger level at import time. The CLI calls
configure_logging() to get output on stderr:

    INFO 10:02:54 fakemachine.backend_uml: linux.uml started backend=uml pid=4242

Fields passed through ``extra=`` are appended as key=value pairs. The guest
shares our terminal, so records are handed to a background thread through
a bounded queue and dropped when it is full rather than blocking the event
loop.
"""

import contextlib
import logging
import logging.handlers
import os
import queue

import click

LIBRARY_LOGGER_NAME = "fakemachine"
LOG_LEVEL_ENV_VAR = "FAKEMACHINE_LOG_LEVEL"

_QUEUE_SIZE = 1024

# Attributes every LogRecord has; anything else came from ``extra=``
_STANDARD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}

_LEVEL_COLORS = {
    logging.DEBUG: None,
    logging.INFO: None,
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "red",
}

_package_logger = logging.getLogger(LIBRARY_LOGGER_NAME)
_package_logger.addHandler(logging.NullHandler())

_env_level = logging.getLevelNamesMapping().get(os.environ.get(LOG_LEVEL_ENV_VAR, "").strip().upper())
if _env_level:
    _package_logger.setLevel(_env_level)


class _FieldsFormatter(logging.Formatter):
    """Plain line format followed by the record's extra fields."""

    def __init__(self) -> None:
        super().__init__(fmt="%(levelname)s %(asctime)s %(name)s: %(message)s", datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = " ".join(f"{k}={v}" for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS)
        return f"{line} {fields}" if fields else line


class _StderrHandler(logging.Handler):
    """Writes formatted records to stderr with click (ANSI stripped off-TTY)."""

    def __init__(self) -> None:
        super().__init__()
        self.setFormatter(_FieldsFormatter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
            color = _LEVEL_COLORS.get(record.levelno)
            click.echo(click.style(line, fg=color, dim=color is None), err=True)
        except BlockingIOError:
            pass
        except Exception:  # noqa: BLE001
            self.handleError(record)


class _QueuedHandler(logging.handlers.QueueHandler):
    """Hands records to a listener thread; never blocks the caller."""

    def __init__(self) -> None:
        records: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=_QUEUE_SIZE)
        super().__init__(records)
        self.listener = logging.handlers.QueueListener(records, _StderrHandler())
        self.listener.start()

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        # Same process; the listener formats the record as-is
        return record

    def enqueue(self, record: logging.LogRecord) -> None:
        with contextlib.suppress(queue.Full):
            self.queue.put_nowait(record)

    def close(self) -> None:
        self.listener.stop()
        super().close()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def configure_logging(*, level: int | str | None = None, quiet: bool = False) -> None:
    """Send package logs to stderr.

    Safe to call more than once; only one stderr handler is installed.

    Args:
        level: Overrides FAKEMACHINE_LOG_LEVEL when given
        quiet: Errors only; wins over ``level``
    """
    if not any(isinstance(h, _QueuedHandler) for h in _package_logger.handlers):
        _package_logger.addHandler(_QueuedHandler())

    if quiet:
        _package_logger.setLevel(logging.ERROR)
    elif level is not None:
        _package_logger.setLevel(level)
