"""
EMA Crossover Strategy.

Compares a short and a long EMA of bar closes:
- short > long  →  BUY
- short < long  →  SELL
- equal         →  HOLD

The action is level-based. Because the SignalEngine only publishes when the
action changes, a signal goes out exactly when the EMAs cross.
"""

from ..core.constants import PositionBias, SignalAction
from ..indicators.moving_averages import ema_series
from .base_strategy import BaseStrategy, StrategyDecision
from .state import SignalState


class EmaCrossoverStrategy(BaseStrategy):
    """EMA(short) / EMA(long) crossover."""

    def get_name(self) -> str:
        return "EMA"

    @property
    def required_history(self) -> int:
        # Current and previous value of the long EMA
        return self.config.ema_long + 1

    def evaluate(self, state: SignalState) -> StrategyDecision:
        closes = state.closes.to_list()
        short_line = ema_series(closes, self.config.ema_short)
        long_line = ema_series(closes, self.config.ema_long)

        if short_line is None or long_line is None or len(closes) < self.required_history:
            self._log_no_signal(f"collecting closes {len(closes)}/{self.required_history}")
            return StrategyDecision(action=SignalAction.HOLD)

        short_now, short_prev = float(short_line.iloc[-1]), float(short_line.iloc[-2])
        long_now, long_prev = float(long_line.iloc[-1]), float(long_line.iloc[-2])

        crossed_up = short_prev < long_prev and short_now > long_now
        crossed_down = short_prev > long_prev and short_now < long_now

        if short_now > long_now:
            action, bias = SignalAction.BUY, PositionBias.LONG
        elif short_now < long_now:
            action, bias = SignalAction.SELL, PositionBias.SHORT
        else:
            action, bias = SignalAction.HOLD, None

        self.logger.debug(
            "EMA evaluation",
            ema_short=round(short_now, 6),
            ema_long=round(long_now, 6),
            crossed_up=crossed_up,
            crossed_down=crossed_down
        )

        return StrategyDecision(
            action=action,
            bias=bias,
            indicators={
                'ema_short': short_now,
                'ema_long': long_now,
                'ema_short_prev': short_prev,
                'ema_long_prev': long_prev,
                'crossover': crossed_up or crossed_down,
            }
        )
