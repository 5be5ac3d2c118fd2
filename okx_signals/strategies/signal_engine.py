"""
Signal Engine - The signal state machine.

Responsibilities:
- Accept completed bars in strictly increasing open time
- Maintain bounded close-price and bar history
- Run the configured strategy once per bar
- Emit a Signal only when the action differs from the last emitted one
- Isolate strategy failures so a bad bar never stops the stream
"""

from datetime import datetime, timezone
from typing import Optional

from ..core.types import Bar, Signal
from ..events.bus import EventBus, EventTopic
from .base_strategy import BaseStrategy
from .state import SignalState


class SignalEngine:
    """Edge-triggered signal generation over completed bars."""

    def __init__(
        self,
        strategy: BaseStrategy,
        state: SignalState,
        bus: Optional[EventBus] = None,
        symbol: str = "",
        timeframe: str = ""
    ):
        """
        Initialize signal engine.

        Args:
            strategy: Strategy selected at startup
            state: Signal state owned by this engine
            bus: Event bus to publish signals on
            symbol: Symbol stamped on emitted signals
            timeframe: Timeframe stamped on emitted signals
        """
        self.strategy = strategy
        self.state = state
        self.bus = bus
        self.symbol = symbol
        self.timeframe = timeframe

        self.bars_processed = 0
        self.signals_emitted = 0
        self.errors = 0

        from ..monitoring.logger import get_logger
        self.logger = get_logger(__name__)

    def on_bar(self, bar: Bar) -> Optional[Signal]:
        """
        Process one completed bar.

        Args:
            bar: Completed bar

        Returns:
            The emitted Signal, or None if the action did not change
        """
        last = self.state.last_open_time
        if last is not None and bar.open_time <= last:
            self.logger.warning(
                "Dropping out-of-order bar",
                open_time=bar.open_time.isoformat(),
                last_open_time=last.isoformat()
            )
            return None

        self.state.record_bar(bar)
        self.bars_processed += 1

        if not self.strategy.has_enough_history(self.state):
            self.logger.debug(
                "Insufficient history",
                bars=len(self.state.bars),
                required=self.strategy.required_history
            )
            return None

        try:
            decision = self.strategy.evaluate(self.state)
        except Exception as e:
            self.errors += 1
            self.logger.error(
                "Strategy error",
                strategy=self.strategy.get_name(),
                open_time=bar.open_time.isoformat(),
                error=str(e),
                exc_info=True
            )
            return None

        if decision.action == self.state.last_action:
            return None

        signal = Signal(
            action=decision.action,
            price=bar.close,
            timestamp=datetime.now(timezone.utc),
            strategy_tag=self.strategy.get_name(),
            symbol=self.symbol or bar.symbol,
            timeframe=self.timeframe,
            bar=bar,
            supporting_indicators=dict(decision.indicators)
        )

        self.state.last_action = decision.action
        if decision.bias is not None:
            self.state.bias = decision.bias
        self.signals_emitted += 1

        self.logger.info(
            "Signal emitted",
            action=signal.action.value,
            price=signal.price,
            strategy=signal.strategy_tag,
            bias=self.state.bias.value
        )

        if self.bus is not None:
            self.bus.publish(EventTopic.SIGNAL, signal)

        return signal

    def reset(self) -> None:
        """Deliberate restart: forget history, bias and last action."""
        self.state.reset()
        self.logger.info("Signal state reset")
