"""Structured logging for the signal engine."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Dict, Optional, Union


LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class TradingLogger:
    """
    Structured logger with keyword argument support.

    ``logger.info("Signal emitted", action="BUY", price=101.5)`` renders as
    ``Signal emitted | action=BUY | price=101.5``.
    """

    def __init__(self, name: str):
        """
        Initialize trading logger.

        Args:
            name: Logger name (typically __name__)
        """
        self.logger = logging.getLogger(name)

    def _format_message(self, msg: str, **kwargs) -> str:
        """Format message with keyword arguments."""
        if kwargs:
            extra = ' | '.join(f'{k}={v}' for k, v in kwargs.items())
            return f"{msg} | {extra}"
        return msg

    def debug(self, msg: str, **kwargs) -> None:
        """Log debug message."""
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(self._format_message(msg, **kwargs))

    def info(self, msg: str, **kwargs) -> None:
        """Log info message."""
        self.logger.info(self._format_message(msg, **kwargs))

    def warning(self, msg: str, **kwargs) -> None:
        """Log warning message."""
        self.logger.warning(self._format_message(msg, **kwargs))

    def error(self, msg: str, exc_info: bool = False, **kwargs) -> None:
        """Log error message."""
        self.logger.error(self._format_message(msg, **kwargs), exc_info=exc_info)

    def critical(self, msg: str, **kwargs) -> None:
        """Log critical message."""
        self.logger.critical(self._format_message(msg, **kwargs))


_loggers: Dict[str, TradingLogger] = {}


def get_logger(name: str) -> TradingLogger:
    """
    Get or create a trading logger.

    Args:
        name: Logger name (typically __name__)

    Returns:
        TradingLogger instance
    """
    if name not in _loggers:
        _loggers[name] = TradingLogger(name)
    return _loggers[name]


def setup_logger(
    log_file: Optional[str] = None,
    level: Union[int, str] = logging.INFO
) -> logging.Logger:
    """
    Configure the root logger once per process.

    Adds a console handler and, when ``log_file`` is given, a rotating file
    handler (10MB x 5 backups). Calling it again replaces the handlers.

    Args:
        log_file: Path of the log file, or None for console only
        level: Logging level (name or number)

    Returns:
        The configured root logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    root = logging.getLogger()
    root.setLevel(level)

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    # Console Handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    # File Handler
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10*1024*1024, # 10MB
            backupCount=5
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # websockets logs every frame at DEBUG
    logging.getLogger('websockets').setLevel(max(level, logging.INFO))

    return root
