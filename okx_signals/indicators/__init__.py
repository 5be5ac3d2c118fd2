"""
Technical indicators for the signal strategies.

All functions are pure: they never mutate their input and return None when
the history is too short.

Modules:
- moving_averages: SMA, EMA, population standard deviation
- volatility: True Range, ATR, Bollinger Bands
- supertrend: ATR band trend with continuation
- fractals: Fractal/Bollinger trend classification
"""

from .moving_averages import sma, stddev, ema, ema_series
from .volatility import true_range, atr, bollinger_bands
from .supertrend import supertrend, supertrend_min_bars
from .fractals import find_fractal, fractal_trend_signal, fractal_min_bars
