"""
Combined Strategy - Supertrend with fractal/Bollinger trend confirmation.

Decision table (evaluated once per completed bar, first match wins):

    bias   | condition                          | action | new bias
    -------+------------------------------------+--------+---------
    LONG   | fractal trend bearish              | SELL   | FLAT
    SHORT  | fractal trend bullish              | BUY    | FLAT
    ≠LONG  | Supertrend UP and fractal bullish  | BUY    | LONG
    ≠SHORT | Supertrend DOWN and fractal bearish| SELL   | SHORT
    any    | otherwise                          | HOLD   | unchanged

"Bullish" covers BULLISH and STRONGLY_BULLISH, likewise for bearish.
"""

from typing import Optional, Tuple

from ..core.constants import FractalTrend, PositionBias, SignalAction, Trend
from ..indicators.fractals import fractal_min_bars, fractal_trend_signal
from ..indicators.supertrend import supertrend, supertrend_min_bars
from .base_strategy import BaseStrategy, StrategyDecision
from .state import SignalState


def decide(
    bias: PositionBias,
    trend: Trend,
    fractal: FractalTrend
) -> Tuple[SignalAction, Optional[PositionBias]]:
    """
    Apply the decision table.

    Returns:
        (action, new bias or None when the bias does not change)
    """
    if bias == PositionBias.LONG and fractal.is_bearish:
        return SignalAction.SELL, PositionBias.FLAT
    if bias == PositionBias.SHORT and fractal.is_bullish:
        return SignalAction.BUY, PositionBias.FLAT
    if bias != PositionBias.LONG and trend == Trend.UP and fractal.is_bullish:
        return SignalAction.BUY, PositionBias.LONG
    if bias != PositionBias.SHORT and trend == Trend.DOWN and fractal.is_bearish:
        return SignalAction.SELL, PositionBias.SHORT
    return SignalAction.HOLD, None


class CombinedStrategy(BaseStrategy):
    """Supertrend + fractal/Bollinger trend line strategy."""

    def get_name(self) -> str:
        return "COMBINED"

    @property
    def required_history(self) -> int:
        return max(
            supertrend_min_bars(self.config.st_period),
            fractal_min_bars(self.config.fractal_period, self.config.bb_length)
        )

    def evaluate(self, state: SignalState) -> StrategyDecision:
        bars = state.bars.to_list()
        cfg = self.config

        st = supertrend(
            bars,
            cfg.st_period,
            cfg.st_multiplier,
            previous_trend=state.supertrend_trend or Trend.UP
        )
        fractal = fractal_trend_signal(bars, cfg.fractal_period, cfg.bb_length, cfg.bb_deviation)

        if st is None or fractal is None:
            self._log_no_signal(f"collecting bars {len(bars)}/{self.required_history}")
            return StrategyDecision(action=SignalAction.HOLD)

        # The trend memo advances on every evaluated bar, signal or not
        state.supertrend_trend = st.trend

        action, bias = decide(state.bias, st.trend, fractal.trend)

        self.logger.info(
            "Indicators",
            supertrend=st.trend.value,
            fractal=fractal.trend.value,
            bias=state.bias.value,
            action=action.value
        )

        return StrategyDecision(
            action=action,
            bias=bias,
            indicators={
                'supertrend': st.trend.value,
                'atr': st.atr,
                'st_upper': st.upper_band,
                'st_lower': st.lower_band,
                'fractal_trend': fractal.trend.value,
                'high_fractal': fractal.high_fractal,
                'low_fractal': fractal.low_fractal,
                'bb_upper': fractal.bands.upper,
                'bb_middle': fractal.bands.middle,
                'bb_lower': fractal.bands.lower,
            }
        )
