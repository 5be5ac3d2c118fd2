"""
Fractal trend detector combined with Bollinger Bands.

A bar in the middle of a ``fractal_period`` wide window is:
- a high fractal if its high is strictly above every other high in the window
- a low fractal if its low is strictly below every other low in the window

The window covers the ``fractal_period`` bars before the latest bar, so the
latest close can break through a fractal level.

Classification of the latest bar:
    close breaks above a high fractal and closes above the middle band → STRONGLY_BULLISH
    close breaks below a low fractal and closes below the middle band  → STRONGLY_BEARISH
    close above the middle band                                        → BULLISH
    close below the middle band                                        → BEARISH
    otherwise                                                          → NEUTRAL
"""

from typing import Optional, Sequence, Tuple

from ..core.constants import FractalTrend
from ..core.types import Bar, FractalSignal
from .volatility import bollinger_bands


def fractal_min_bars(fractal_period: int, bb_length: int) -> int:
    return max(fractal_period + 1, bb_length)


def find_fractal(window: Sequence[Bar]) -> Tuple[bool, bool]:
    """
    Check whether the middle bar of the window is a fractal.

    Returns:
        (is_high_fractal, is_low_fractal)
    """
    mid = len(window) // 2
    pivot = window[mid]
    others = [bar for i, bar in enumerate(window) if i != mid]

    is_high = all(pivot.high > bar.high for bar in others)
    is_low = all(pivot.low < bar.low for bar in others)
    return is_high, is_low


def fractal_trend_signal(
    bars: Sequence[Bar],
    fractal_period: int,
    bb_length: int,
    bb_deviation: float
) -> Optional[FractalSignal]:
    """
    Classify the latest bar from fractal breakouts and Bollinger position.

    Args:
        bars: Completed bars, oldest first
        fractal_period: Width of the fractal window
        bb_length: Bollinger window over closes
        bb_deviation: Bollinger band width in standard deviations

    Returns:
        FractalSignal, or None on insufficient data
    """
    bars = list(bars)
    if fractal_period < 3 or len(bars) < fractal_min_bars(fractal_period, bb_length):
        return None

    window = bars[-(fractal_period + 1):-1]
    pivot = window[len(window) // 2]
    is_high, is_low = find_fractal(window)

    bands = bollinger_bands([bar.close for bar in bars], bb_length, bb_deviation)
    if bands is None:
        return None

    close = float(bars[-1].close)

    if is_high and close > float(pivot.high) and close > bands.middle:
        trend = FractalTrend.STRONGLY_BULLISH
    elif is_low and close < float(pivot.low) and close < bands.middle:
        trend = FractalTrend.STRONGLY_BEARISH
    elif close > bands.middle:
        trend = FractalTrend.BULLISH
    elif close < bands.middle:
        trend = FractalTrend.BEARISH
    else:
        trend = FractalTrend.NEUTRAL

    return FractalSignal(
        trend=trend,
        high_fractal=is_high,
        low_fractal=is_low,
        bands=bands
    )
