"""
Signal State - Everything the signal state machine remembers between bars.

Created once at startup and owned by the SignalEngine. It is reset only on a
deliberate restart; nothing here is persisted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..core.constants import PositionBias, SignalAction, Trend
from ..core.types import Bar
from ..data.series import BoundedSeries


@dataclass
class SignalState:
    """
    Mutable state of the signal state machine.

    Attributes:
        closes: Close prices of completed bars
        bars: Completed bars
        bias: Position bias after the last emitted signal
        last_action: Action of the last emitted signal
        last_open_time: Open time of the last processed bar
        supertrend_trend: Trend returned by Supertrend for the previous bar
    """
    max_price_history: int = 1000
    max_ohlc_history: int = 500
    closes: BoundedSeries[Decimal] = field(init=False)
    bars: BoundedSeries[Bar] = field(init=False)
    bias: PositionBias = PositionBias.FLAT
    last_action: SignalAction = SignalAction.HOLD
    last_open_time: Optional[datetime] = None
    supertrend_trend: Optional[Trend] = None

    def __post_init__(self):
        self.closes = BoundedSeries(self.max_price_history)
        self.bars = BoundedSeries(self.max_ohlc_history)

    def record_bar(self, bar: Bar) -> None:
        """Append a completed bar to the histories."""
        self.closes.append(bar.close)
        self.bars.append(bar)
        self.last_open_time = bar.open_time

    def reset(self) -> None:
        """Return to the startup state."""
        self.closes.clear()
        self.bars.clear()
        self.bias = PositionBias.FLAT
        self.last_action = SignalAction.HOLD
        self.last_open_time = None
        self.supertrend_trend = None
