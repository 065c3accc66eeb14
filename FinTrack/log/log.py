"""Logging setup shared by the FinTrack server and client.

Records go to stdout and to an in-memory :class:`TankHandler`. Qt messages
and the uvicorn loggers are routed through the same root configuration so
every line carries the same format.
"""
import collections
import logging
import os
import sys

from PySide6.QtCore import QtMsgType, qInstallMessageHandler

from ..core.actions import signals

LOG_LEVEL = logging.DEBUG
LOG_LEVEL_ENV_KEY = 'FINTRACK_LOG_LEVEL'
LOG_FORMAT = '[%(asctime)s] <%(module)s> %(levelname)s:  %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

TANK_SIZE = 5000

LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}

# Server loggers that otherwise install their own handlers
SERVER_LOGGERS = ('uvicorn', 'uvicorn.error', 'uvicorn.access')


def resolve_level(level):
    """
    Return the numeric logging level for ``level``.

    Args:
        level (int | str): A standard logging level or its name, e.g. ``'INFO'``.

    Raises:
        ValueError: If the level is not one of the standard levels.
    """
    if isinstance(level, str):
        name = level.strip().upper()
        if name not in LEVELS:
            raise ValueError(f'Invalid logging level "{level}". Use one of {", ".join(LEVELS)}.')
        return LEVELS[name]

    if not isinstance(level, int) or isinstance(level, bool):
        raise ValueError('Logging level must be an integer or a level name.')
    if level not in LEVELS.values():
        raise ValueError('Invalid logging level. Use one of the standard logging levels, e.g., logging.DEBUG.')
    return level


def set_logging_level(level):
    """
    Sets the logging level for the root logger and its handlers.

    Args:
        level (int | str): The logging level to set.
    """
    level = resolve_level(level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)


def default_level():
    """Return the level named by ``FINTRACK_LOG_LEVEL``, or :data:`LOG_LEVEL` when unset or invalid."""
    value = os.environ.get(LOG_LEVEL_ENV_KEY)
    if not value:
        return LOG_LEVEL
    try:
        return resolve_level(value)
    except ValueError:
        return LOG_LEVEL


def qt_message_handler(mode, context, message):
    """
    Converts Qt messages to standard Python logging.
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


def setup_logging(enable_stream_handler=True, enable_qt_handler=True, log_level=None):
    """
    Configures the root logger, the log tank and optionally the Qt message handler.

    Args:
        enable_stream_handler (bool): Add a stdout stream handler.
        enable_qt_handler (bool): Route Qt messages through Python logging.
        log_level (int | str, optional): The root logging level. Read from
            ``FINTRACK_LOG_LEVEL`` when omitted.
    """
    log_level = default_level() if log_level is None else resolve_level(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear all handlers to avoid formatting conflicts
    root_logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    if enable_stream_handler:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        stream_handler.setLevel(log_level)
        root_logger.addHandler(stream_handler)

    tank_handler = TankHandler()
    tank_handler.setFormatter(formatter)
    tank_handler.setLevel(log_level)
    root_logger.addHandler(tank_handler)

    for name in SERVER_LOGGERS:
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True

    if enable_qt_handler:
        qInstallMessageHandler(qt_message_handler)


def get_tank():
    """Return the :class:`TankHandler` installed on the root logger, if any."""
    return next((h for h in logging.getLogger().handlers if isinstance(h, TankHandler)), None)


class TankHandler(logging.Handler):
    """
    Logging handler that stores formatted log messages in an in-memory tank.

    The server runs for a long time, so only the newest ``maxlen`` messages are kept.
    Records arrive from the request workers and the save worker as well as the main thread.

    Attributes:
        tank (collections.deque[tuple[int, str]]): Log level and formatted message pairs, oldest first.
    """

    def __init__(self, maxlen=TANK_SIZE):
        super().__init__()
        self.tank = collections.deque(maxlen=maxlen)

    def emit(self, record):
        """
        Converts a log record to a formatted message and stores it in the tank.

        Errors additionally emit ``signals.showLogs``.

        Args:
            record (logging.LogRecord): The log record to be processed.
        """
        try:
            message = self.format(record)
            self.tank.append((record.levelno, message))
            if record.levelno >= logging.ERROR:
                signals.showLogs.emit()
        except (Exception, KeyboardInterrupt):
            self.handleError(record)

    def get_logs(self, level=logging.NOTSET):
        """
        Returns the stored log messages filtered by a minimum logging level.

        Args:
            level (int, optional): The minimum logging level. Defaults to logging.NOTSET.

        Returns:
            list[str]: Formatted log messages with a level >= the specified level.
        """
        return [msg for lvl, msg in list(self.tank) if lvl >= level]

    def clear_logs(self):
        self.tank.clear()
