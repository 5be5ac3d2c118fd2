"""
Unit tests for bounded history and bar aggregation.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from okx_signals.core.types import Bar, Tick
from okx_signals.data import BarAggregator, BoundedSeries, bars_to_frame
from okx_signals.events import EventBus, EventTopic


START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _tick(seconds, price):
    ts = START + timedelta(seconds=seconds)
    return Tick(
        symbol="BTC-USDT",
        price=Decimal(str(price)),
        volume=Decimal("1000"),
        exchange_timestamp=ts,
        local_timestamp=ts
    )


def _candle(minute, close, complete=True, second=0):
    open_time = START + timedelta(minutes=minute, seconds=second)
    price = Decimal(str(close))
    return Bar(
        symbol="BTC-USDT",
        open_time=open_time,
        close_time=open_time + timedelta(minutes=1),
        open=price,
        high=price + 1,
        low=price - 1,
        close=price,
        volume=Decimal("5"),
        complete=complete
    )


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def closed_bars(bus):
    received = []
    bus.subscribe(EventTopic.BAR_CLOSED, received.append)
    return received


# ── BoundedSeries ────────────────────────────────────────────────────

def test_series_evicts_oldest():
    series = BoundedSeries(3)
    for i in range(1, 6):
        series.append(i)

    assert len(series) == 3
    assert series.to_list() == [3, 4, 5]
    assert series.last() == 5
    assert series.is_full


def test_series_indexing():
    series = BoundedSeries(5, items=[1, 2, 3, 4])

    assert series[0] == 1
    assert series[-1] == 4
    assert series[1:3] == [2, 3]
    assert series.tail(2) == [3, 4]
    assert series.tail(0) == []


def test_series_never_exceeds_capacity():
    series = BoundedSeries(10)
    series.extend(range(1000))

    assert len(series) == 10
    assert list(series) == list(range(990, 1000))


def test_series_empty_and_invalid_capacity():
    assert BoundedSeries(2).last() is None
    with pytest.raises(ValueError):
        BoundedSeries(0)


def test_bars_to_frame():
    df = bars_to_frame([_candle(0, 100), _candle(1, 101)])

    assert list(df.columns) == ['open', 'high', 'low', 'close', 'volume']
    assert df['close'].tolist() == [100.0, 101.0]
    assert df.index[0] == START


# ── Tick aggregation ─────────────────────────────────────────────────

def test_first_tick_seeds_aligned_bar():
    agg = BarAggregator("BTC-USDT", "1m")

    assert agg.on_tick(_tick(30, 100)) is None
    assert agg.current_bar.open_time == START
    assert agg.current_bar.open == Decimal("100")
    assert not agg.current_bar.complete


def test_ticks_fold_into_open_bar():
    agg = BarAggregator("BTC-USDT", "1m")
    agg.on_tick(_tick(5, 100))
    agg.on_tick(_tick(20, 105))
    agg.on_tick(_tick(40, 98))
    agg.on_tick(_tick(50, 101))

    bar = agg.current_bar
    assert bar.high == Decimal("105")
    assert bar.low == Decimal("98")
    assert bar.close == Decimal("101")
    assert bar.volume == Decimal("3")


def test_boundary_closes_bar(bus, closed_bars):
    agg = BarAggregator("BTC-USDT", "1m", bus=bus)
    agg.on_tick(_tick(30, 100))
    agg.on_tick(_tick(45, 105))

    completed = agg.on_tick(_tick(65, 99))

    assert completed is not None
    assert completed.complete
    assert completed.open_time == START
    assert completed.close_time == START + timedelta(minutes=1)
    assert completed.high == Decimal("105")
    assert completed.close == Decimal("105")
    assert closed_bars == [completed]

    # Crossing tick opens the next bar
    current = agg.current_bar
    assert current.open_time == START + timedelta(minutes=1)
    assert current.open == current.high == current.low == current.close == Decimal("99")
    assert current.volume == Decimal("0")


def test_gap_closes_one_bar_per_tick(bus, closed_bars):
    """A gap over several boundaries closes a single bar with stale OHLC."""
    agg = BarAggregator("BTC-USDT", "1m", bus=bus)
    agg.on_tick(_tick(10, 100))
    agg.on_tick(_tick(70, 101))
    agg.on_tick(_tick(310, 102))

    assert [bar.open_time for bar in closed_bars] == [START, START + timedelta(minutes=1)]
    assert agg.current_bar.open_time == START + timedelta(minutes=2)


def test_open_times_aligned_and_increasing():
    agg = BarAggregator("BTC-USDT", "5m")
    seconds = 17
    for i in range(200):
        agg.on_tick(_tick(seconds, 100 + i % 7))
        seconds += 41

    open_times = [bar.open_time for bar in agg.history]
    assert open_times == sorted(set(open_times))
    for ts in open_times:
        assert (ts - START) % timedelta(minutes=5) == timedelta(0)


def test_history_is_bounded():
    agg = BarAggregator("BTC-USDT", "1m", max_bars=3)
    for minute in range(10):
        agg.on_tick(_tick(minute * 60 + 1, 100))

    assert len(agg.history) == 3


# ── Candle pass-through ──────────────────────────────────────────────

def test_confirmed_candle_passes_through(bus, closed_bars):
    agg = BarAggregator("BTC-USDT", "1m", bus=bus)
    candle = _candle(0, 100)

    assert agg.on_candle(candle) == candle
    assert closed_bars == [candle]


def test_duplicate_candle_dropped(closed_bars, bus):
    agg = BarAggregator("BTC-USDT", "1m", bus=bus)
    agg.on_candle(_candle(1, 100))

    assert agg.on_candle(_candle(1, 101)) is None
    assert agg.on_candle(_candle(0, 99)) is None
    assert agg.duplicates_dropped == 2
    assert len(closed_bars) == 1


def test_misaligned_candle_dropped():
    agg = BarAggregator("BTC-USDT", "1m")

    assert agg.on_candle(_candle(0, 100, second=30)) is None
    assert agg.misaligned_dropped == 1
    assert len(agg.history) == 0


def test_partial_candle_promoted_by_later_open_time(closed_bars, bus):
    agg = BarAggregator("BTC-USDT", "1m", bus=bus)
    agg.on_candle(_candle(0, 100, complete=False))
    agg.on_candle(_candle(0, 102, complete=False))

    assert closed_bars == []
    assert agg.current_bar.close == Decimal("102")

    promoted = agg.on_candle(_candle(1, 103, complete=False))

    assert promoted.open_time == START
    assert promoted.close == Decimal("102")
    assert promoted.complete
    assert closed_bars == [promoted]


def test_confirmed_candle_replaces_pending_partial(closed_bars, bus):
    agg = BarAggregator("BTC-USDT", "1m", bus=bus)
    agg.on_candle(_candle(0, 100, complete=False))
    final = _candle(0, 101)

    assert agg.on_candle(final) == final
    # The later push must not promote the stale partial a second time
    agg.on_candle(_candle(1, 102, complete=False))
    assert closed_bars == [final]
