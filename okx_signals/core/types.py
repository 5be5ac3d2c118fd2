"""Core data types for the signal engine.

This module defines all fundamental data structures used throughout the
signal engine using dataclasses. All types follow strict validation rules:
- Decimal for all prices and volumes (never float)
- datetime for all timestamps (UTC-aware)
- Validation in __post_init__ where needed
- Market data and signals are frozen

Indicator snapshots carry floats: they are computed with numpy/pandas and
never feed back into prices.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from .constants import FractalTrend, SignalAction, Trend
from .exceptions import InvalidBarError


def _ensure_utc(obj: Any, name: str) -> None:
    value = getattr(obj, name)
    if value is not None and value.tzinfo is None:
        object.__setattr__(obj, name, value.replace(tzinfo=timezone.utc))


# ============================================================================
# Market Data Types
# ============================================================================

@dataclass(frozen=True)
class Tick:
    """Real-time ticker update."""
    symbol: str
    price: Decimal
    volume: Decimal
    exchange_timestamp: datetime
    local_timestamp: datetime

    def __post_init__(self):
        """Ensure UTC timezone."""
        _ensure_utc(self, 'exchange_timestamp')
        _ensure_utc(self, 'local_timestamp')

    @property
    def skew_ms(self) -> float:
        """Local receive time minus exchange time, in milliseconds."""
        return (self.local_timestamp - self.exchange_timestamp).total_seconds() * 1000


@dataclass(frozen=True)
class Bar:
    """
    OHLCV candlestick bar.

    ``open_time`` is aligned to the timeframe, ``close_time`` is the
    exclusive end of the bar period. A bar with ``complete=False`` is the
    in-progress bar; once complete it is never changed again.

    Validates OHLC integrity on creation.
    """
    symbol: str
    open_time: datetime
    close_time: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    complete: bool = False

    def __post_init__(self):
        """Validate bar integrity."""
        # High must be >= max(open, close)
        if self.high < max(self.open, self.close):
            raise InvalidBarError(
                f"Invalid bar: high ({self.high}) < max(open, close)",
                symbol=self.symbol,
                open_time=self.open_time.isoformat()
            )

        # Low must be <= min(open, close)
        if self.low > min(self.open, self.close):
            raise InvalidBarError(
                f"Invalid bar: low ({self.low}) > min(open, close)",
                symbol=self.symbol,
                open_time=self.open_time.isoformat()
            )

        _ensure_utc(self, 'open_time')
        _ensure_utc(self, 'close_time')

    @property
    def hl2(self) -> Decimal:
        """(High + Low) / 2"""
        return (self.high + self.low) / Decimal("2")


# ============================================================================
# Indicator Snapshots
# ============================================================================

@dataclass(frozen=True)
class BollingerBands:
    """Bollinger Bands over the trailing window."""
    upper: float
    middle: float
    lower: float


@dataclass(frozen=True)
class SupertrendSnapshot:
    """
    Supertrend evaluation for the latest bar.

    ``upper_band``/``lower_band`` are the reference bands the latest close
    was compared against.
    """
    trend: Trend
    atr: float
    upper_band: float
    lower_band: float


@dataclass(frozen=True)
class FractalSignal:
    """Fractal/Bollinger trend classification for the latest bar."""
    trend: FractalTrend
    high_fractal: bool
    low_fractal: bool
    bands: BollingerBands


# ============================================================================
# Signal Types
# ============================================================================

@dataclass(frozen=True)
class Signal:
    """
    Trading signal published by the signal state machine.

    Published once per change of action.
    """
    action: SignalAction
    price: Decimal
    timestamp: datetime
    strategy_tag: str
    symbol: str = ""
    timeframe: str = ""
    bar: Optional[Bar] = None
    supporting_indicators: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Ensure UTC timezone."""
        _ensure_utc(self, 'timestamp')

    @property
    def is_actionable(self) -> bool:
        """True for BUY/SELL, False for HOLD."""
        return self.action != SignalAction.HOLD


@dataclass(frozen=True)
class ClockSkewWarning:
    """Published when exchange and local clocks disagree beyond threshold."""
    symbol: str
    exchange_timestamp: datetime
    local_timestamp: datetime
    skew_ms: float
    threshold_ms: int
