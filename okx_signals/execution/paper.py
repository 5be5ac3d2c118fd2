"""
Paper Execution Client - Logs orders instead of sending them.

Protective levels mirror what the live bot places next to each market order:
stop-loss 0.5% and take-profit 1% away from the reference price.
"""

from decimal import Decimal
from itertools import count
from typing import List, Optional

from ..core.constants import SignalAction, TradeMode
from ..core.exceptions import OrderRejectedError
from .base import ExecutionClient, OrderResult


STOP_LOSS_PCT = Decimal("0.005")
TAKE_PROFIT_PCT = Decimal("0.01")
PRICE_QUANTUM = Decimal("0.01")


def protective_levels(side: SignalAction, price: Decimal):
    """
    Stop-loss and take-profit prices for a market entry.

    Returns:
        (stop_loss, take_profit) rounded to cents
    """
    if side == SignalAction.BUY:
        stop_loss = price * (1 - STOP_LOSS_PCT)
        take_profit = price * (1 + TAKE_PROFIT_PCT)
    else:
        stop_loss = price * (1 + STOP_LOSS_PCT)
        take_profit = price * (1 - TAKE_PROFIT_PCT)
    return stop_loss.quantize(PRICE_QUANTUM), take_profit.quantize(PRICE_QUANTUM)


class PaperExecutionClient(ExecutionClient):
    """In-memory execution client for dry runs and tests."""

    def __init__(self):
        self.orders: List[OrderResult] = []
        self.leverage: Optional[int] = None
        self.trade_mode: Optional[TradeMode] = None
        self._ids = count(1)

        from ..monitoring.logger import get_logger
        self.logger = get_logger(__name__)

    async def place_order(
        self,
        symbol: str,
        side: SignalAction,
        size: Decimal,
        price: Optional[Decimal] = None
    ) -> OrderResult:
        if side == SignalAction.HOLD:
            raise OrderRejectedError("HOLD is not an order side", symbol=symbol)
        if size <= 0:
            raise OrderRejectedError(f"Order size must be positive, got {size}", symbol=symbol)

        stop_loss = take_profit = None
        if price is not None:
            stop_loss, take_profit = protective_levels(side, price)

        result = OrderResult(
            order_id=f"paper-{next(self._ids)}",
            symbol=symbol,
            side=side,
            size=size,
            price=price,
            stop_loss=stop_loss,
            take_profit=take_profit
        )
        self.orders.append(result)

        self.logger.info(
            "Paper order placed",
            order_id=result.order_id,
            side=side.value,
            size=size,
            symbol=symbol,
            price=price,
            stop_loss=stop_loss,
            take_profit=take_profit
        )
        return result

    async def set_leverage(self, symbol: str, leverage: int, mode: TradeMode) -> bool:
        self.leverage = leverage
        self.trade_mode = mode
        self.logger.info("Paper leverage set", symbol=symbol, leverage=leverage, mode=mode.value)
        return True
