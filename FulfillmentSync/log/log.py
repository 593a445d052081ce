"""Logging setup for FulfillmentSync.

Everything logs through the root logger. :func:`setup_logging` installs a
stdout handler, the in-memory :class:`TankHandler` and a bridge that routes
Qt's own diagnostics into Python logging.

The tank keeps a bounded history of formatted records. Each record gets a
sequence number, so a caller can take a :meth:`TankHandler.mark` before a
piece of work and later collect only what was logged since, which is how a
commit collects its report.
"""
import collections
import logging
import sys
import threading
from typing import Deque, List, Optional, Tuple

from PySide6.QtCore import QtMsgType, qInstallMessageHandler

from ..signals import signals

LOG_LEVEL = logging.DEBUG
LOG_FORMAT = '[%(asctime)s] <%(module)s> %(levelname)s:  %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

TANK_SIZE = 5000

_LEVELS = (logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL)


def set_logging_level(level: int) -> None:
    """
    Sets the level of the root logger and of every handler installed on it.

    Args:
        level: One of the standard logging levels.

    Raises:
        ValueError: If level is not a standard logging level.
    """
    if not isinstance(level, int) or isinstance(level, bool):
        raise ValueError('Logging level must be an integer.')
    if level not in _LEVELS:
        raise ValueError('Invalid logging level. Use one of the standard logging levels, e.g., logging.DEBUG.')

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)


def qt_message_handler(mode, context, message):
    """
    Routes a Qt diagnostic message to the 'Qt' logger.

    A fatal Qt message terminates the process, as Qt itself would.
    """
    logger = logging.getLogger('Qt')
    message = message.strip()

    if mode == QtMsgType.QtDebugMsg:
        logger.debug(message)
    elif mode == QtMsgType.QtInfoMsg:
        logger.info(message)
    elif mode == QtMsgType.QtWarningMsg:
        logger.warning(message)
    elif mode == QtMsgType.QtCriticalMsg:
        logger.error(message)
    elif mode == QtMsgType.QtFatalMsg:
        logger.critical(message)
        sys.exit(1)


def setup_logging(enable_stream_handler: bool = True, enable_qt_handler: bool = True,
                  log_level: int = LOG_LEVEL, tank_size: int = TANK_SIZE) -> None:
    """
    Resets the root logger and installs the application handlers.

    Args:
        enable_stream_handler: Also log to stdout.
        enable_qt_handler: Route Qt's own messages through Python logging.
        log_level: Level for the root logger and the installed handlers.
        tank_size: Number of records the in-memory tank keeps.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Handlers from an earlier call would format and store every record twice
    root_logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    if enable_stream_handler:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        stream_handler.setLevel(log_level)
        root_logger.addHandler(stream_handler)

    tank_handler = TankHandler(maxlen=tank_size)
    tank_handler.setFormatter(formatter)
    tank_handler.setLevel(log_level)
    root_logger.addHandler(tank_handler)

    if enable_qt_handler:
        qInstallMessageHandler(qt_message_handler)


def get_tank() -> Optional['TankHandler']:
    """Return the TankHandler installed on the root logger, or None."""
    return next(
        (h for h in logging.getLogger().handlers if isinstance(h, TankHandler)),
        None
    )


class TankHandler(logging.Handler):
    """
    Keeps the most recent formatted log records in memory.

    Records at ERROR or above raise :attr:`Signals.showLogs` so a front-end can
    bring its log view forward.

    Attributes:
        tank (collections.deque[tuple[int, int, str]]): ``(sequence, level, message)``
            entries, oldest first.
    """

    def __init__(self, maxlen: int = TANK_SIZE):
        super().__init__()
        self.tank: Deque[Tuple[int, int, str]] = collections.deque(maxlen=maxlen)
        self._sequence = 0
        self._tank_lock = threading.Lock()

    def emit(self, record):
        """
        Formats a record and appends it to the tank.

        Args:
            record (logging.LogRecord): The record to store.
        """
        try:
            message = self.format(record)
            with self._tank_lock:
                self._sequence += 1
                self.tank.append((self._sequence, record.levelno, message))
            if record.levelno >= logging.ERROR:
                signals.showLogs.emit()
        except (Exception, KeyboardInterrupt):
            self.handleError(record)

    def mark(self) -> int:
        """Return the sequence number of the last stored record."""
        with self._tank_lock:
            return self._sequence

    def get_logs(self, level: int = logging.NOTSET, since: int = 0) -> List[str]:
        """
        Returns stored messages at or above a level.

        Args:
            level: The minimum logging level.
            since: Only return records stored after this :meth:`mark`.

        Returns:
            list[str]: The formatted messages, oldest first.
        """
        with self._tank_lock:
            entries = list(self.tank)
        return [msg for seq, lvl, msg in entries if lvl >= level and seq > since]

    def clear_logs(self):
        """Empties the tank. Sequence numbers keep counting."""
        with self._tank_lock:
            self.tank.clear()
