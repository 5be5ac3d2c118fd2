"""
Data Layer - Market data aggregation and bounded history.

Main Components:
    BarAggregator: Builds completed OHLCV bars from ticks or exchange candles
    BoundedSeries: Fixed-capacity FIFO history buffer
    bars_to_frame: Bar history to pandas DataFrame for indicator math
"""

from .bar_aggregator import BarAggregator
from .series import BoundedSeries, bars_to_frame

__all__ = [
    "BarAggregator",
    "BoundedSeries",
    "bars_to_frame",
]
