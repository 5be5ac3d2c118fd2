"""
Supertrend - ATR band trend follower with trend continuation.

Reference bands come from the bar before the latest one:
    upper = hl2_prev + multiplier × ATR_prev
    lower = hl2_prev − multiplier × ATR_prev

Trend for the latest bar:
    close > upper  →  UP
    close < lower  →  DOWN
    otherwise      →  previous trend (continuation, not recomputation)

The previous trend is the one value carried between calls. Callers own it
and pass it back in; the function itself keeps no state.
"""

from typing import Optional, Sequence

from ..core.constants import Trend
from ..core.types import Bar, SupertrendSnapshot
from .volatility import atr


def supertrend_min_bars(period: int) -> int:
    """Bars needed: ATR over ``period`` bars ending at the previous bar."""
    return period + 2


def supertrend(
    bars: Sequence[Bar],
    period: int,
    multiplier: float,
    previous_trend: Trend = Trend.UP
) -> Optional[SupertrendSnapshot]:
    """
    Evaluate Supertrend on the latest bar.

    Args:
        bars: Completed bars, oldest first
        period: ATR period
        multiplier: Band width in ATRs
        previous_trend: Trend returned for the previous bar

    Returns:
        SupertrendSnapshot, or None on insufficient data
    """
    bars = list(bars)
    if len(bars) < supertrend_min_bars(period):
        return None

    reference = bars[:-1]
    ref_atr = atr(reference, period)
    hl2 = float(reference[-1].hl2)

    upper = hl2 + multiplier * ref_atr
    lower = hl2 - multiplier * ref_atr
    close = float(bars[-1].close)

    if close > upper:
        trend = Trend.UP
    elif close < lower:
        trend = Trend.DOWN
    else:
        trend = previous_trend

    return SupertrendSnapshot(
        trend=trend,
        atr=ref_atr,
        upper_band=upper,
        lower_band=lower
    )
