"""
Bar Aggregator - Builds completed OHLCV bars for one timeframe.

Two input modes:
1. ``on_tick``: bars are built locally from ticker updates
2. ``on_candle``: exchange candle pushes are validated and passed through

Either way, completed bars are appended to history in strictly increasing
open time and published on ``BAR_CLOSED``.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from ..core.timeframes import floor_to_timeframe, is_aligned, parse_timeframe
from ..core.types import Bar, Tick
from ..events.bus import EventBus, EventTopic
from .series import BoundedSeries


logger = logging.getLogger(__name__)


TICK_WEIGHT = Decimal("1")


@dataclass
class _OpenBar:
    """Mutable in-progress bar, owned by the aggregator only."""
    open_time: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal

    def update(self, price: Decimal, weight: Decimal) -> None:
        self.high = max(self.high, price)
        self.low = min(self.low, price)
        self.close = price
        self.volume += weight


class BarAggregator:
    """
    Aggregates ticks (or exchange candles) into completed bars.

    Exactly one bar is open at any time. It is frozen into an immutable Bar
    when the boundary is crossed and never changed afterwards.
    """

    def __init__(
        self,
        symbol: str,
        timeframe: str,
        max_bars: int = 500,
        bus: Optional[EventBus] = None
    ):
        """
        Initialize aggregator.

        Args:
            symbol: Symbol for the bars
            timeframe: Timeframe (e.g., "30m")
            max_bars: Capacity of the completed bar history
            bus: Event bus to publish completed bars on
        """
        self.symbol = symbol
        self.timeframe = timeframe
        self.period: timedelta = parse_timeframe(timeframe)
        self.history: BoundedSeries[Bar] = BoundedSeries(max_bars)
        self.bus = bus

        self._open_bar: Optional[_OpenBar] = None
        self._pending_candle: Optional[Bar] = None
        self._last_open_time: Optional[datetime] = None

        self.duplicates_dropped = 0
        self.misaligned_dropped = 0

    # ------------------------------------------------------------------
    # Tick mode
    # ------------------------------------------------------------------

    def on_tick(self, tick: Tick, weight: Decimal = TICK_WEIGHT) -> Optional[Bar]:
        """
        Fold a tick into the open bar.

        Args:
            tick: New ticker update
            weight: Volume contribution of this tick (one per update by default)

        Returns:
            Completed Bar if the tick crossed a bar boundary, None otherwise
        """
        now = tick.local_timestamp
        price = tick.price

        # The first bar is aligned on wall-clock receive time, not exchange time
        if self._open_bar is None:
            self._open_bar = self._new_open_bar(floor_to_timeframe(now, self.period), price)
            logger.info(
                "Started first %s bar at %s", self.timeframe, self._open_bar.open_time.isoformat()
            )
            return None

        if now < self._open_bar.open_time + self.period:
            self._open_bar.update(price, weight)
            return None

        completed = self._freeze(self._open_bar)

        # A gap over several boundaries still closes a single bar
        next_open = self._open_bar.open_time + self.period
        if now >= next_open + self.period:
            logger.warning(
                "Tick gap spans multiple %s boundaries, closing one bar with stale OHLC",
                self.timeframe
            )
        self._open_bar = self._new_open_bar(next_open, price)

        return self._append(completed)

    # ------------------------------------------------------------------
    # Candle mode
    # ------------------------------------------------------------------

    def on_candle(self, candle: Bar) -> Optional[Bar]:
        """
        Accept an exchange candle push.

        Confirmed candles pass through at once. Unconfirmed candles are held
        as the partial bar and promoted when a later open time arrives.

        Returns:
            Completed Bar appended to history, None otherwise
        """
        if not is_aligned(candle.open_time, self.period):
            self.misaligned_dropped += 1
            logger.warning(
                "Dropping candle not aligned to %s: %s",
                self.timeframe, candle.open_time.isoformat()
            )
            return None

        pending = self._pending_candle
        promoted = None

        if pending is not None and candle.open_time > pending.open_time:
            self._pending_candle = None
            promoted = self._append(replace(pending, complete=True))

        if candle.complete:
            if self._pending_candle is not None and self._pending_candle.open_time == candle.open_time:
                self._pending_candle = None
            completed = self._append(candle)
            return completed or promoted

        if self._last_open_time is not None and candle.open_time <= self._last_open_time:
            self._drop_duplicate(candle)
            return promoted

        if self._pending_candle is None or candle.open_time >= self._pending_candle.open_time:
            self._pending_candle = candle
        return promoted

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def current_bar(self) -> Optional[Bar]:
        """Snapshot of the bar being built (complete=False)."""
        if self._open_bar is not None:
            return self._snapshot(self._open_bar, complete=False)
        return self._pending_candle

    @property
    def last_open_time(self) -> Optional[datetime]:
        return self._last_open_time

    def _new_open_bar(self, open_time: datetime, price: Decimal) -> _OpenBar:
        return _OpenBar(
            open_time=open_time,
            open=price,
            high=price,
            low=price,
            close=price,
            volume=Decimal("0")
        )

    def _snapshot(self, bar: _OpenBar, complete: bool) -> Bar:
        return Bar(
            symbol=self.symbol,
            open_time=bar.open_time,
            close_time=bar.open_time + self.period,
            open=bar.open,
            high=bar.high,
            low=bar.low,
            close=bar.close,
            volume=bar.volume,
            complete=complete
        )

    def _freeze(self, bar: _OpenBar) -> Bar:
        return self._snapshot(bar, complete=True)

    def _drop_duplicate(self, bar: Bar) -> None:
        self.duplicates_dropped += 1
        logger.debug(
            "Dropping duplicate or out-of-order bar: %s (last=%s)",
            bar.open_time.isoformat(),
            self._last_open_time.isoformat() if self._last_open_time else None
        )

    def _append(self, bar: Bar) -> Optional[Bar]:
        if self._last_open_time is not None and bar.open_time <= self._last_open_time:
            self._drop_duplicate(bar)
            return None

        self.history.append(bar)
        self._last_open_time = bar.open_time

        logger.info(
            "Bar completed: %s %s O=%s H=%s L=%s C=%s V=%s [%d bars in history]",
            self.symbol, self.timeframe, bar.open, bar.high, bar.low, bar.close,
            bar.volume, len(self.history)
        )

        if self.bus is not None:
            self.bus.publish(EventTopic.BAR_CLOSED, bar)
        return bar
