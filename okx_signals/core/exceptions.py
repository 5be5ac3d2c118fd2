"""Exception hierarchy for the signal engine.

This module defines all custom exceptions used throughout the signal engine.
All exceptions inherit from TradingSystemError for easy catching and handling.

Not having enough history for an indicator or a strategy is not an error:
those functions return None instead of raising.
"""

from typing import Any, Dict


class TradingSystemError(Exception):
    """Base exception for all signal engine errors.

    All custom exceptions in the signal engine inherit from this class,
    allowing for easy catching of any trading related errors.
    """

    def __init__(self, message: str, **context: Any):
        """Initialize the exception with a message and optional context.

        Args:
            message: Error message describing what went wrong
            **context: Additional context information for logging and debugging
        """
        super().__init__(message)
        self.context: Dict[str, Any] = context

    def __str__(self) -> str:
        """Return string representation including context."""
        if self.context:
            ctx = ', '.join(f'{k}={v}' for k, v in self.context.items())
            return f"{super().__str__()} [{ctx}]"
        return super().__str__()


# ============================================================================
# Configuration Exceptions
# ============================================================================

class ConfigurationError(TradingSystemError):
    """Base class for configuration errors.

    Configuration errors are fatal and are raised before any connection
    attempt is made.
    """


class InvalidConfigError(ConfigurationError):
    """Raised when configuration contains invalid values.

    This exception is raised when configuration values fail validation,
    such as negative periods, an unknown strategy name, or an EMA short
    period that is not shorter than the long period.
    """


class MissingConfigError(ConfigurationError):
    """Raised when required configuration is missing.

    This exception is raised when mandatory configuration keys or sections
    are not found in the configuration file.
    """


# ============================================================================
# Transport Exceptions
# ============================================================================

class TransportError(TradingSystemError):
    """Base class for streaming transport errors.

    Transport errors are recovered by reconnecting with backoff, or for a
    single malformed frame, by skipping the frame.
    """


class ConnectionLostError(TransportError):
    """Raised when an established connection is lost.

    This exception is raised when a previously working connection drops
    unexpectedly, requiring reconnection.
    """


class HeartbeatTimeoutError(TransportError):
    """Raised when the exchange stops answering pings or sending frames.

    A missed pong or a receive stall is handled exactly like an unexpected
    close of the connection.
    """


class FrameDecodeError(TransportError):
    """Raised when a single inbound frame cannot be decoded.

    The frame is logged and discarded; the connection stays open.
    """


class ReconnectExhaustedError(TradingSystemError):
    """Raised when the reconnect budget is used up.

    This is fatal and is surfaced to the process boundary for operator
    intervention rather than retried forever.
    """


# ============================================================================
# Data Exceptions
# ============================================================================

class DataValidationError(TradingSystemError):
    """Raised when data fails validation.

    This exception is raised when incoming market data fails validation
    checks, such as missing fields, invalid types, or values outside
    acceptable ranges.
    """


class InvalidBarError(DataValidationError):
    """Raised when a price bar is invalid.

    This exception is raised when a price bar has inconsistent values, such
    as a high below the open or close, or a low above them.
    """


# ============================================================================
# Execution Exceptions
# ============================================================================

class ExecutionError(TradingSystemError):
    """Base class for errors raised by the execution collaborator."""


class OrderRejectedError(ExecutionError):
    """Raised when an order is rejected by the exchange."""
