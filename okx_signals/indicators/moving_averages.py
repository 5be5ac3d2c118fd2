"""
Moving averages and dispersion over a price series.

SMA_n    = mean of the trailing n values
StdDev_n = population standard deviation of the trailing n values
EMA_n    = price × k + EMA_prev × (1 − k),  k = 2 / (n + 1),
           seeded with the SMA of the first n values

Every function returns None when the series is shorter than the window.
"""

from decimal import Decimal
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd


Number = Union[Decimal, float, int]


def to_array(values: Iterable[Number]) -> np.ndarray:
    """Copy a price sequence into a float64 array."""
    return np.array([float(v) for v in values], dtype=np.float64)


def sma(series: Iterable[Number], length: int) -> Optional[float]:
    """
    Simple Moving Average of the trailing ``length`` values.

    Args:
        series: Prices, oldest first
        length: Window length

    Returns:
        SMA value, or None on insufficient data
    """
    values = to_array(series)
    if length < 1 or len(values) < length:
        return None
    return float(values[-length:].mean())


def stddev(series: Iterable[Number], length: int) -> Optional[float]:
    """Population standard deviation (ddof=0) of the trailing ``length`` values."""
    values = to_array(series)
    if length < 1 or len(values) < length:
        return None
    return float(values[-length:].std(ddof=0))


def ema_series(series: Iterable[Number], length: int) -> Optional[pd.Series]:
    """
    Exponential Moving Average line.

    The first ``length - 1`` entries are NaN, entry ``length - 1`` is the SMA
    seed, later entries apply the exponential smoothing.

    Returns:
        Series aligned with the input, or None on insufficient data
    """
    values = to_array(series)
    if length < 1 or len(values) < length:
        return None

    k = 2.0 / (length + 1)
    out = np.full(len(values), np.nan)
    current = values[:length].mean()
    out[length - 1] = current
    for i in range(length, len(values)):
        current = values[i] * k + current * (1.0 - k)
        out[i] = current

    return pd.Series(out, name=f"ema_{length}")


def ema(series: Iterable[Number], length: int) -> Optional[float]:
    """Latest EMA value, or None on insufficient data."""
    line = ema_series(series, length)
    if line is None:
        return None
    return float(line.iloc[-1])
