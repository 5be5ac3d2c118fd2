"""Strategy selection, done once at startup."""

from typing import Dict, Type

from ..core.config import StrategyConfig
from ..core.constants import StrategyType
from ..core.exceptions import InvalidConfigError
from .base_strategy import BaseStrategy
from .combined import CombinedStrategy
from .ema_crossover import EmaCrossoverStrategy


STRATEGIES: Dict[StrategyType, Type[BaseStrategy]] = {
    StrategyType.EMA: EmaCrossoverStrategy,
    StrategyType.COMBINED: CombinedStrategy,
}


def build_strategy(config: StrategyConfig) -> BaseStrategy:
    """
    Instantiate the configured strategy.

    Raises:
        InvalidConfigError: If no strategy is registered under config.name
    """
    try:
        strategy_cls = STRATEGIES[config.name]
    except KeyError:
        raise InvalidConfigError(
            f"Unknown strategy: {config.name}",
            available=[s.value for s in STRATEGIES]
        ) from None
    return strategy_cls(config)
