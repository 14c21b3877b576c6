"""
Async queue-based logging system.

Module loggers under the ``dexarb`` namespace hand their records to a
bounded queue; a background listener thread does the console and file
writes, so a slow terminal never stalls a fetch cycle.
"""

import logging
import sys
from datetime import datetime
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from queue import Queue

from dexarb.config.constants import LOG_DATE_FORMAT, LOG_FORMAT, MAX_LOG_QUEUE_SIZE


ROOT_LOGGER_NAME = "dexarb"

# Third-party loggers capped at WARNING
NOISY_LOGGERS = ("aiohttp", "asyncio", "urllib3")


class MicrosecondFormatter(logging.Formatter):
    """Appends microseconds to the formatted record time."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        created = datetime.fromtimestamp(record.created)
        return f"{created:{datefmt or LOG_DATE_FORMAT}}.{created.microsecond:06d}"


def build_handlers(level: int, log_file: Path | None = None) -> list[logging.Handler]:
    """
    Create the sink handlers driven by the queue listener.

    The console honours ``level``; a log file, when given, always
    receives DEBUG records.
    """
    formatter = MicrosecondFormatter(LOG_FORMAT, LOG_DATE_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    sinks: list[logging.Handler] = [console]

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_sink = logging.FileHandler(log_file, encoding="utf-8")
        file_sink.setLevel(logging.DEBUG)
        sinks.append(file_sink)

    for sink in sinks:
        sink.setFormatter(formatter)
    return sinks


class AsyncLogger:
    """
    Owns the queue handler and its listener thread for one logger tree.

    Use as a context manager, or call ``start()`` and ``stop()``;
    ``stop()`` flushes whatever is still queued.
    """

    def __init__(
        self,
        name: str = ROOT_LOGGER_NAME,
        level: int = logging.INFO,
        log_file: Path | None = None,
    ) -> None:
        self._level = level
        self._log_file = log_file
        self._logger = logging.getLogger(name)
        self._queue: Queue[logging.LogRecord] = Queue(maxsize=MAX_LOG_QUEUE_SIZE)
        self._queue_handler = QueueHandler(self._queue)
        self._listener: QueueListener | None = None

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @property
    def running(self) -> bool:
        return self._listener is not None

    def start(self) -> None:
        """Attach the queue handler and start the listener; no-op if running."""
        if self.running:
            return

        sinks = build_handlers(self._level, self._log_file)
        self._listener = QueueListener(self._queue, *sinks, respect_handler_level=True)

        # The file sink wants DEBUG even when the console does not
        self._logger.setLevel(logging.DEBUG if self._log_file else self._level)
        self._logger.addHandler(self._queue_handler)
        self._listener.start()

    def stop(self) -> None:
        if self._listener is None:
            return
        self._listener.stop()
        self._listener = None
        self._logger.removeHandler(self._queue_handler)

    def __enter__(self) -> "AsyncLogger":
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()


def setup_logging(
    level: str = "INFO",
    log_file: str | Path | None = None,
) -> AsyncLogger:
    """
    Install queue-based logging for the whole application.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional path that additionally receives DEBUG output.

    Returns:
        The started AsyncLogger; call ``stop()`` on shutdown to flush.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    async_logger = AsyncLogger(
        level=numeric_level,
        log_file=Path(log_file) if log_file else None,
    )
    async_logger.start()
    return async_logger
