"""
Volatility indicators over completed bars.

True Range = max(high − low, |high − prev_close|, |low − prev_close|)
ATR_n      = mean of the last n True Range values
Bollinger  = SMA_n ± deviation × StdDev_n (population)
"""

from typing import Iterable, Optional, Sequence

import pandas as pd

from ..core.types import Bar, BollingerBands
from ..data.series import bars_to_frame
from .moving_averages import Number, sma, stddev


def true_range(bars: Sequence[Bar]) -> pd.Series:
    """
    True Range of every bar that has a predecessor.

    Args:
        bars: Bars in chronological order

    Returns:
        Series of len(bars) - 1 values (first bar has no previous close)
    """
    df = bars_to_frame(bars)
    high = df['high']
    low = df['low']
    prev_close = df['close'].shift(1)

    tr1 = high - low
    tr2 = (high - prev_close).abs()
    tr3 = (low - prev_close).abs()

    tr = pd.concat([tr1, tr2, tr3], axis=1).max(axis=1, skipna=False)
    return tr.iloc[1:].rename("true_range")


def atr(bars: Sequence[Bar], period: int) -> Optional[float]:
    """
    Average True Range over the last ``period`` bars.

    Needs ``period + 1`` bars so every range has a previous close.

    Returns:
        ATR value, or None on insufficient data
    """
    if period < 1 or len(bars) < period + 1:
        return None
    tr = true_range(bars[-(period + 1):])
    return float(tr.mean())


def bollinger_bands(
    series: Iterable[Number],
    length: int,
    deviation: float
) -> Optional[BollingerBands]:
    """
    Bollinger Bands over the trailing ``length`` prices.

    Returns:
        BollingerBands(upper, middle, lower), or None on insufficient data
    """
    values = list(series)
    middle = sma(values, length)
    if middle is None:
        return None
    sd = stddev(values, length)
    return BollingerBands(
        upper=middle + deviation * sd,
        middle=middle,
        lower=middle - deviation * sd
    )
