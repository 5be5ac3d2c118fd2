"""System-wide constants and enumerations for the signal engine.

This module defines all constants, enumerations, and default values used
throughout the signal engine. These values provide sensible defaults and
standardize string values across the codebase.
"""

from enum import Enum


# ============================================================================
# Enumerations
# ============================================================================

class SignalAction(str, Enum):
    """Enumeration of signal actions.

    Defines what a strategy decided for the most recent completed bar:
    - BUY: Open a long position or close a short one
    - SELL: Open a short position or close a long one
    - HOLD: No change in decision
    """
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class PositionBias(str, Enum):
    """Enumeration of position bias held by the signal state machine.

    - LONG: Last confirmed signal entered a long position
    - SHORT: Last confirmed signal entered a short position
    - FLAT: No position (neutral)
    """
    LONG = "LONG"
    SHORT = "SHORT"
    FLAT = "FLAT"


class StrategyType(str, Enum):
    """Enumeration of available strategies.

    Exactly one strategy is active per process and it is chosen at startup.
    """
    EMA = "EMA"
    COMBINED = "COMBINED"


class BarSource(str, Enum):
    """Where completed bars come from.

    - TICKS: Bars are built locally from ticker updates
    - CANDLES: Bars are taken from exchange candle pushes
    """
    TICKS = "ticks"
    CANDLES = "candles"


class Trend(str, Enum):
    """Supertrend direction."""
    UP = "up"
    DOWN = "down"


class FractalTrend(str, Enum):
    """Classification produced by the fractal/Bollinger trend detector.

    The strong variants mean a fractal breakout happened on the latest bar,
    the plain variants only reflect price position against the middle band.
    """
    STRONGLY_BULLISH = "strongly_bullish"
    BULLISH = "bullish"
    NEUTRAL = "neutral"
    BEARISH = "bearish"
    STRONGLY_BEARISH = "strongly_bearish"

    @property
    def is_bullish(self) -> bool:
        return self in (FractalTrend.BULLISH, FractalTrend.STRONGLY_BULLISH)

    @property
    def is_bearish(self) -> bool:
        return self in (FractalTrend.BEARISH, FractalTrend.STRONGLY_BEARISH)


class ConnectionState(str, Enum):
    """Enumeration of streaming connector states.

    DISCONNECTED → CONNECTING → CONNECTED → BACKING_OFF → CONNECTING ...
                                                 ↓
                                               FAILED
    """
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    BACKING_OFF = "BACKING_OFF"
    FAILED = "FAILED"


class TradeMode(str, Enum):
    """Margin mode used when setting leverage on the exchange."""
    CROSS = "cross"
    ISOLATED = "isolated"


# ============================================================================
# Exchange Constants
# ============================================================================

OKX_PUBLIC_WS_URL: str = "wss://ws.okx.com:8443/ws/v5/public"
"""Public OKX WebSocket endpoint for ticker and candle channels."""

TICKER_CHANNEL: str = "tickers"
"""Name of the OKX ticker channel."""

CANDLE_CHANNEL_PREFIX: str = "candle"
"""Prefix of OKX candle channels (e.g. candle30m, candle1H)."""


# ============================================================================
# Connection Defaults
# ============================================================================

HEARTBEAT_INTERVAL_SECONDS: float = 20.0
"""Interval between transport-level pings sent to the exchange.

OKX drops idle connections after 30 seconds, so the ping must be sent
well within that window.
"""

HEARTBEAT_TIMEOUT_SECONDS: float = 10.0
"""Maximum time to wait for a pong before the ping counts as missed."""

HEARTBEAT_MAX_FAILURES: int = 1
"""Missed pongs tolerated before the connection is considered lost."""

INITIAL_RECONNECT_DELAY_MS: int = 1000
"""Delay before the first reconnect attempt."""

RECONNECT_MULTIPLIER: float = 1.5
"""Growth factor applied to the reconnect delay on each attempt."""

MAX_RECONNECT_ATTEMPTS: int = 10
"""Maximum number of reconnection attempts before giving up.

After this many failed reconnection attempts, the connector stops trying and
raises an error that requires manual intervention.
"""

CLOCK_SKEW_THRESHOLD_MS: int = 5000
"""Allowed difference between exchange and local timestamps on a tick."""


# ============================================================================
# History Defaults
# ============================================================================

MAX_PRICE_HISTORY: int = 1000
"""Capacity of the close-price history used by the strategies."""

MAX_OHLC_HISTORY: int = 500
"""Capacity of the completed bar history."""

EVENT_CHANNEL_MAXSIZE: int = 1000
"""Pending lossy events (ticks) tolerated per async channel before dropping."""


# ============================================================================
# Process Exit Codes
# ============================================================================

EXIT_OK: int = 0
"""Graceful shutdown."""

EXIT_RECONNECT_EXHAUSTED: int = 1
"""Stream could not be re-established within the reconnect budget."""

EXIT_CONFIG_ERROR: int = 2
"""Configuration failed validation before any connection attempt."""
