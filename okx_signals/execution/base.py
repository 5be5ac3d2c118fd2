"""
Execution collaborator contract.

The signal engine never talks to an exchange. Accepted signals are handed to
an ExecutionClient by the SignalDispatcher; the real OKX REST client lives
outside this package and only has to implement this interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from ..core.constants import SignalAction, TradeMode


@dataclass(frozen=True)
class OrderResult:
    """
    Outcome of one order placement.

    Attributes:
        order_id: Exchange (or synthetic) order id
        symbol: Instrument id
        side: BUY or SELL
        size: Order size in contracts
        price: Reference price used for protective levels
        stop_loss: Stop-loss trigger price, if one was placed
        take_profit: Take-profit trigger price, if one was placed
        timestamp: When the order was acknowledged
    """
    order_id: str
    symbol: str
    side: SignalAction
    size: Decimal
    price: Optional[Decimal] = None
    stop_loss: Optional[Decimal] = None
    take_profit: Optional[Decimal] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ExecutionClient(ABC):
    """Places orders for accepted signals."""

    @abstractmethod
    async def place_order(
        self,
        symbol: str,
        side: SignalAction,
        size: Decimal,
        price: Optional[Decimal] = None
    ) -> OrderResult:
        """
        Place a market order.

        Args:
            symbol: Instrument id
            side: BUY or SELL
            size: Order size
            price: Latest known price, used for protective levels

        Returns:
            OrderResult

        Raises:
            ExecutionError: If the order could not be placed
        """
        pass

    @abstractmethod
    async def set_leverage(self, symbol: str, leverage: int, mode: TradeMode) -> bool:
        """Set leverage for the instrument; returns True on success."""
        pass
