"""
Base Strategy - Abstract base class for signal strategies.

Strategy Lifecycle:
1. SignalEngine records a completed bar in SignalState
2. SignalEngine checks the strategy has enough history
3. evaluate() computes indicators and returns a StrategyDecision
4. SignalEngine publishes a Signal if the action changed

Design Principles:
- Strategies decide, they don't publish or place orders
- Strategies don't mutate SignalState except the Supertrend memo
- All decisions must be explainable (via indicators)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..core.config import StrategyConfig
from ..core.constants import PositionBias, SignalAction
from .state import SignalState


@dataclass(frozen=True)
class StrategyDecision:
    """
    Outcome of one strategy evaluation.

    Attributes:
        action: BUY, SELL or HOLD
        bias: Position bias to adopt if the signal is emitted (None = unchanged)
        indicators: Indicator values that supported the decision
    """
    action: SignalAction
    bias: Optional[PositionBias] = None
    indicators: Dict[str, Any] = field(default_factory=dict)


class BaseStrategy(ABC):
    """
    Abstract base class for all strategies.

    Subclasses must implement:
    - evaluate()
    - get_name()
    - required_history
    """

    def __init__(self, config: StrategyConfig):
        """
        Initialize strategy.

        Args:
            config: Strategy configuration
        """
        self.config = config

        # Logging
        from ..monitoring.logger import get_logger
        self.logger = get_logger(f"strategy.{self.get_name()}")

    @abstractmethod
    def evaluate(self, state: SignalState) -> StrategyDecision:
        """
        Decide on the latest completed bar.

        Args:
            state: Signal state; the latest bar is last in state.bars

        Returns:
            StrategyDecision for this bar
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """
        Get strategy name.

        Returns:
            Strategy identifier used as the signal's strategy tag
        """
        pass

    @property
    @abstractmethod
    def required_history(self) -> int:
        """Minimum number of completed bars needed by evaluate()."""
        pass

    def has_enough_history(self, state: SignalState) -> bool:
        return len(state.bars) >= self.required_history

    def _log_no_signal(self, reason: str) -> None:
        """Log why no signal was generated."""
        self.logger.debug(f"No signal: {reason}")
