"""
OKX Signal Bot - Central orchestrator.

Wiring (single event loop, synchronous bus handlers):

    connector ──TICK / CANDLE_UPDATE──▶ aggregator ──BAR_CLOSED──▶ signal engine
                                                                      │
                                             dispatcher ◀──SIGNAL─────┘
                                           (own task, async channel)

Lifecycle:
1. Load and validate configuration (exit 2 on failure)
2. Build components and subscribe them on the bus
3. Run the connector until SIGINT/SIGTERM (exit 0) or until reconnects are
   exhausted (exit 1)
4. Close channels and wait for the dispatcher before returning
"""

import asyncio
import signal
import sys
from typing import List, Optional

from .connectors.okx_stream import OkxStreamConnector
from .core.config import BotConfig, load_config
from .core.constants import (
    BarSource, EXIT_CONFIG_ERROR, EXIT_OK, EXIT_RECONNECT_EXHAUSTED,
)
from .core.exceptions import ConfigurationError, ReconnectExhaustedError
from .data.bar_aggregator import BarAggregator
from .events.bus import EventBus, EventTopic
from .execution.base import ExecutionClient
from .execution.dispatcher import SignalDispatcher
from .execution.paper import PaperExecutionClient
from .monitoring.logger import get_logger, setup_logger
from .strategies.registry import build_strategy
from .strategies.signal_engine import SignalEngine
from .strategies.state import SignalState


logger = get_logger(__name__)


class SignalBot:
    """
    Signal bot orchestrator.

    Owns every component for one symbol and timeframe.
    """

    def __init__(self, config: BotConfig, execution_client: Optional[ExecutionClient] = None):
        """
        Initialize bot.

        Args:
            config: Validated configuration
            execution_client: Order collaborator (paper client if not given)
        """
        self.config = config
        stream = config.stream

        self.bus = EventBus()

        self.aggregator = BarAggregator(
            symbol=stream.symbol,
            timeframe=stream.timeframe,
            max_bars=config.history.max_ohlc_history,
            bus=self.bus
        )

        self.strategy = build_strategy(config.strategy)
        self.state = SignalState(
            max_price_history=config.history.max_price_history,
            max_ohlc_history=config.history.max_ohlc_history
        )
        self.engine = SignalEngine(
            strategy=self.strategy,
            state=self.state,
            bus=self.bus,
            symbol=stream.symbol,
            timeframe=stream.timeframe
        )

        self.connector = OkxStreamConnector(stream, config.reconnect, self.bus)

        self.dispatcher: Optional[SignalDispatcher] = None
        if config.execution.enabled:
            self.dispatcher = SignalDispatcher(
                client=execution_client or PaperExecutionClient(),
                config=config.execution,
                symbol=stream.symbol
            )

        # Wire the pipeline
        if stream.bar_source == BarSource.CANDLES:
            self.bus.subscribe(EventTopic.CANDLE_UPDATE, self.aggregator.on_candle)
        else:
            self.bus.subscribe(EventTopic.TICK, self.aggregator.on_tick)
        self.bus.subscribe(EventTopic.BAR_CLOSED, self.engine.on_bar)

        self.running = False
        self._signals_installed: List[int] = []

    async def run(self) -> None:
        """
        Run until stop() is called.

        Raises:
            ReconnectExhaustedError: If the stream could not be re-established
        """
        cfg = self.config
        logger.info("=" * 60)
        logger.info(
            "Starting OKX signal bot",
            symbol=cfg.stream.symbol,
            timeframe=cfg.stream.timeframe,
            strategy=self.strategy.get_name(),
            bar_source=cfg.stream.bar_source.value,
            execution=cfg.execution.enabled
        )
        logger.info("=" * 60)

        self._install_signal_handlers()

        dispatcher_task = None
        if self.dispatcher is not None:
            channel = self.bus.open_channel(EventTopic.SIGNAL, maxsize=cfg.events.channel_maxsize)
            await self.dispatcher.start()
            dispatcher_task = asyncio.ensure_future(self.dispatcher.run(channel))

        self.running = True
        try:
            await self.connector.connect()
        finally:
            self.running = False
            self.bus.close_channels()
            if dispatcher_task is not None:
                await dispatcher_task
            self._remove_signal_handlers()
            self._log_summary()

    async def stop(self) -> None:
        """Graceful shutdown; run() returns once everything has unwound."""
        logger.info("Shutting down signal bot")
        await self.connector.close()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._signal_handler, signum)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform or outside the main thread
                continue
            self._signals_installed.append(signum)

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in self._signals_installed:
            loop.remove_signal_handler(signum)
        self._signals_installed.clear()

    def _signal_handler(self, signum: int) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum} - initiating shutdown")
        asyncio.ensure_future(self.stop())

    def _log_summary(self) -> None:
        stream = self.connector.get_status()
        logger.info(
            "Session summary",
            bars=len(self.aggregator.history),
            signals=self.engine.signals_emitted,
            strategy_errors=self.engine.errors,
            sessions=stream['sessions'],
            frames=stream['frames_received'],
            frames_skipped=stream['frames_skipped'],
            bias=self.state.bias.value
        )
        if self.dispatcher is not None:
            logger.info(
                "Execution summary",
                orders=self.dispatcher.orders_placed,
                skipped_cooldown=self.dispatcher.skipped_cooldown,
                skipped_busy=self.dispatcher.skipped_busy,
                failures=self.dispatcher.failures
            )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point; returns the process exit code."""
    import argparse

    parser = argparse.ArgumentParser(description="OKX streaming signal bot")
    parser.add_argument(
        '--config',
        default='config/config.yaml',
        help='Configuration file path'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Override monitoring.log_level'
    )

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        setup_logger(
            log_file=config.monitoring.log_file,
            level=args.log_level or config.monitoring.log_level
        )
        bot = SignalBot(config)
    except ConfigurationError as e:
        setup_logger(level=args.log_level or 'INFO')
        logger.critical("Configuration error", error=str(e))
        return EXIT_CONFIG_ERROR

    try:
        asyncio.run(bot.run())
    except ReconnectExhaustedError as e:
        logger.critical("Stream lost for good", error=str(e))
        return EXIT_RECONNECT_EXHAUSTED
    except KeyboardInterrupt:
        logger.info("Interrupted")

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
