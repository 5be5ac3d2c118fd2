"""
Unit tests for technical indicators.

Tests use synthetic bars with hand-computed expected results.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from okx_signals.core.constants import FractalTrend, Trend
from okx_signals.core.types import Bar
from okx_signals.indicators import (
    atr, bollinger_bands, ema, ema_series, find_fractal, fractal_trend_signal,
    sma, stddev, supertrend, true_range,
)


START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _bar(i, high, low, close, open_=None):
    open_time = START + timedelta(minutes=i)
    return Bar(
        symbol="BTC-USDT",
        open_time=open_time,
        close_time=open_time + timedelta(minutes=1),
        open=Decimal(str(open_ if open_ is not None else close)),
        high=Decimal(str(high)),
        low=Decimal(str(low)),
        close=Decimal(str(close)),
        volume=Decimal("1"),
        complete=True
    )


def _flat_bars(n, price=100.0, spread=1.0):
    return [_bar(i, price + spread, price - spread, price) for i in range(n)]


# ── Moving averages ──────────────────────────────────────────────────

def test_sma_calculation():
    """SMA is the mean of the trailing window."""
    assert sma([1, 2, 3, 4, 5], 3) == pytest.approx(4.0)
    assert sma([Decimal("1.5"), Decimal("2.5")], 2) == pytest.approx(2.0)


def test_stddev_is_population():
    """StdDev divides by n, not n - 1."""
    assert stddev([2, 4, 4, 4, 5, 5, 7, 9], 8) == pytest.approx(2.0)


def test_ema_seeded_with_sma():
    """EMA starts at the SMA of the first window, then smooths with k = 2/(n+1)."""
    # seed = 2, then 4*0.5 + 2*0.5 = 3, then 5*0.5 + 3*0.5 = 4
    assert ema([1, 2, 3, 4, 5], 3) == pytest.approx(4.0)


def test_ema_series_alignment():
    """Leading entries without a full window are NaN."""
    line = ema_series([1, 2, 3, 4, 5], 3)

    assert len(line) == 5
    assert line[:2].isna().all()
    assert line.iloc[2] == pytest.approx(2.0)


def test_ema_constant_series_converges():
    """EMA of a constant series equals that constant."""
    assert ema([42.0] * 50, 9) == pytest.approx(42.0)


def test_insufficient_history_returns_none():
    """Short input is not an error."""
    assert sma([1, 2], 3) is None
    assert stddev([1], 2) is None
    assert ema([1, 2], 3) is None
    assert ema_series([], 1) is None


def test_indicators_do_not_mutate_input():
    closes = [Decimal("1"), Decimal("2"), Decimal("3")]
    ema(closes, 2)
    sma(closes, 2)
    assert closes == [Decimal("1"), Decimal("2"), Decimal("3")]


# ── Volatility ───────────────────────────────────────────────────────

def test_true_range_uses_previous_close():
    bars = [
        _bar(0, 10, 8, 9),
        _bar(1, 12, 9, 11),     # max(3, |12-9|, |9-9|) = 3
        _bar(2, 11, 10, 10.5),  # max(1, |11-11|, |10-11|) = 1
    ]
    tr = true_range(bars)

    assert list(tr) == pytest.approx([3.0, 1.0])


def test_atr_needs_period_plus_one_bars():
    bars = [
        _bar(0, 10, 8, 9),
        _bar(1, 12, 9, 11),
        _bar(2, 11, 10, 10.5),
    ]
    assert atr(bars, 2) == pytest.approx(2.0)
    assert atr(bars, 3) is None


def test_atr_positive():
    """ATR is a distance, never negative."""
    bars = _flat_bars(30, spread=0.5)
    assert atr(bars, 14) > 0


def test_bollinger_bands_constant_series_collapse():
    bands = bollinger_bands([100.0] * 20, 20, 2.0)

    assert bands.upper == pytest.approx(100.0)
    assert bands.middle == pytest.approx(100.0)
    assert bands.lower == pytest.approx(100.0)


def test_bollinger_bands_width():
    bands = bollinger_bands([2, 4, 4, 4, 5, 5, 7, 9], 8, 2.0)

    assert bands.middle == pytest.approx(5.0)
    assert bands.upper == pytest.approx(9.0)
    assert bands.lower == pytest.approx(1.0)
    assert bollinger_bands([1, 2], 3, 2.0) is None


# ── Supertrend ───────────────────────────────────────────────────────

def test_supertrend_breakout_up():
    # ATR = 2, bands 100 ± 6
    bars = _flat_bars(5) + [_bar(5, 110, 100, 110, open_=100)]
    snapshot = supertrend(bars, period=3, multiplier=3.0, previous_trend=Trend.DOWN)

    assert snapshot.trend == Trend.UP
    assert snapshot.upper_band == pytest.approx(106.0)
    assert snapshot.lower_band == pytest.approx(94.0)


def test_supertrend_breakout_down():
    bars = _flat_bars(5) + [_bar(5, 100, 90, 90, open_=100)]
    snapshot = supertrend(bars, period=3, multiplier=3.0, previous_trend=Trend.UP)

    assert snapshot.trend == Trend.DOWN


def test_supertrend_inside_bands_keeps_previous_trend():
    """Price between the bands continues the previous trend."""
    bars = _flat_bars(6)

    assert supertrend(bars, 3, 3.0, previous_trend=Trend.DOWN).trend == Trend.DOWN
    assert supertrend(bars, 3, 3.0, previous_trend=Trend.UP).trend == Trend.UP


def test_supertrend_stable_on_flat_market():
    """A flat market never flips the trend, however long it runs."""
    bars = _flat_bars(60)
    trend = Trend.UP
    for end in range(12, len(bars) + 1):
        trend = supertrend(bars[:end], 10, 3.0, previous_trend=trend).trend
        assert trend == Trend.UP


def test_supertrend_insufficient_history():
    assert supertrend(_flat_bars(4), period=3, multiplier=3.0) is None


# ── Fractals ─────────────────────────────────────────────────────────

def test_find_fractal_high():
    window = [
        _bar(0, 101, 99, 100),
        _bar(1, 102, 99, 100),
        _bar(2, 110, 99, 100),
        _bar(3, 102, 99, 100),
        _bar(4, 101, 99, 100),
    ]
    assert find_fractal(window) == (True, False)


def test_find_fractal_low():
    window = [
        _bar(0, 101, 98, 100),
        _bar(1, 101, 97, 100),
        _bar(2, 101, 90, 100),
        _bar(3, 101, 97, 100),
        _bar(4, 101, 98, 100),
    ]
    assert find_fractal(window) == (False, True)


def test_find_fractal_is_strict():
    """Equal extremes do not make a fractal."""
    window = _flat_bars(5)
    assert find_fractal(window) == (False, False)


def test_fractal_breakout_strongly_bullish():
    bars = [
        _bar(0, 101, 99, 100),
        _bar(1, 101, 99, 100),
        _bar(2, 110, 99, 100),  # high fractal
        _bar(3, 101, 99, 100),
        _bar(4, 101, 99, 100),
        _bar(5, 116, 100, 115, open_=100),  # closes above the fractal high
    ]
    signal = fractal_trend_signal(bars, fractal_period=5, bb_length=5, bb_deviation=2.0)

    assert signal.high_fractal
    assert not signal.low_fractal
    assert signal.trend == FractalTrend.STRONGLY_BULLISH


def test_fractal_breakout_strongly_bearish():
    bars = [
        _bar(0, 101, 99, 100),
        _bar(1, 101, 99, 100),
        _bar(2, 101, 90, 100),  # low fractal
        _bar(3, 101, 99, 100),
        _bar(4, 101, 99, 100),
        _bar(5, 100, 84, 85, open_=100),
    ]
    signal = fractal_trend_signal(bars, fractal_period=5, bb_length=5, bb_deviation=2.0)

    assert signal.trend == FractalTrend.STRONGLY_BEARISH


def test_fractal_trend_follows_middle_band_without_breakout():
    rising = _flat_bars(5) + [_bar(5, 103, 100, 102, open_=100)]
    falling = _flat_bars(5) + [_bar(5, 100, 97, 98, open_=100)]

    assert fractal_trend_signal(rising, 5, 5, 2.0).trend == FractalTrend.BULLISH
    assert fractal_trend_signal(falling, 5, 5, 2.0).trend == FractalTrend.BEARISH
    assert fractal_trend_signal(_flat_bars(6), 5, 5, 2.0).trend == FractalTrend.NEUTRAL


def test_fractal_insufficient_history():
    assert fractal_trend_signal(_flat_bars(5), 5, 5, 2.0) is None
    assert fractal_trend_signal(_flat_bars(10), 5, 20, 2.0) is None
