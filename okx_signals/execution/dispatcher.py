"""
Signal Dispatcher - Hands accepted signals to the execution client.

Rules applied to every signal, in order:
1. HOLD signals are ignored
2. Signals inside the cooldown window after the last placed order are skipped
3. Signals arriving while an order call is in flight are skipped

Execution errors are logged and never reach the signal pipeline.
"""

import asyncio
import time
from typing import Callable, Optional

from ..core.config import ExecutionConfig
from ..core.exceptions import ExecutionError
from ..core.types import Signal
from ..events.bus import EventChannel
from .base import ExecutionClient, OrderResult


class SignalDispatcher:
    """Consumes the SIGNAL channel and places orders."""

    def __init__(
        self,
        client: ExecutionClient,
        config: ExecutionConfig,
        symbol: str,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize dispatcher.

        Args:
            client: Execution client
            config: Execution settings (size, cooldown, leverage)
            symbol: Instrument to trade
            clock: Monotonic clock in seconds
        """
        self.client = client
        self.config = config
        self.symbol = symbol
        self._clock = clock

        self.last_trade_time: Optional[float] = None
        self._in_flight: Optional[asyncio.Task] = None

        self.orders_placed = 0
        self.skipped_cooldown = 0
        self.skipped_busy = 0
        self.failures = 0

        from ..monitoring.logger import get_logger
        self.logger = get_logger(__name__)

    async def start(self) -> None:
        """Apply leverage settings once before trading."""
        try:
            ok = await self.client.set_leverage(
                self.symbol, self.config.leverage, self.config.trade_mode
            )
        except ExecutionError as e:
            self.logger.error("Failed to set leverage", error=str(e))
            return

        if ok:
            self.logger.info(
                "Leverage set",
                symbol=self.symbol,
                leverage=self.config.leverage,
                mode=self.config.trade_mode.value
            )
        else:
            self.logger.warning("Leverage was not accepted", symbol=self.symbol)

    async def run(self, channel: EventChannel) -> None:
        """Process signals until the channel is closed, then drain."""
        async for event in channel:
            if self.handle(event.payload):
                # Give the order call a chance to start before the next signal
                await asyncio.sleep(0)
        await self.wait_idle()

    def handle(self, signal: Signal) -> bool:
        """
        Accept or skip one signal.

        Returns:
            True if an order call was started
        """
        if not signal.is_actionable:
            self.logger.debug("Ignoring HOLD signal")
            return False

        now = self._clock()
        if self.last_trade_time is not None and now - self.last_trade_time < self.config.cooldown_seconds:
            self.skipped_cooldown += 1
            self.logger.info(
                "Trade cooldown in effect, skipping signal",
                action=signal.action.value,
                remaining=round(self.config.cooldown_seconds - (now - self.last_trade_time), 1)
            )
            return False

        if self._in_flight is not None and not self._in_flight.done():
            self.skipped_busy += 1
            self.logger.info("Order in progress, skipping signal", action=signal.action.value)
            return False

        self.logger.info("Dispatching signal", action=signal.action.value, price=signal.price)
        self._in_flight = asyncio.ensure_future(self._execute(signal))
        return True

    async def _execute(self, signal: Signal) -> Optional[OrderResult]:
        try:
            result = await self.client.place_order(
                self.symbol, signal.action, self.config.trade_size, price=signal.price
            )
        except ExecutionError as e:
            self.failures += 1
            self.logger.error("Order failed", action=signal.action.value, error=str(e))
            return None
        except Exception as e:
            self.failures += 1
            self.logger.error(
                "Unexpected execution error",
                action=signal.action.value,
                error=str(e),
                exc_info=True
            )
            return None

        self.last_trade_time = self._clock()
        self.orders_placed += 1
        return result

    async def wait_idle(self) -> None:
        """Wait for the in-flight order call, if any."""
        task = self._in_flight
        if task is not None and not task.done():
            await task

    @property
    def busy(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()
