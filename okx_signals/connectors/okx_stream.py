"""
OKX Stream Connector - Public WebSocket market data.

Connection state machine:

    DISCONNECTED → CONNECTING → CONNECTED → BACKING_OFF → CONNECTING → ...
                                                 ↓
                                               FAILED

Responsibilities:
- Open the WebSocket and subscribe to the ticker and candle channels
- Decode frames and publish ticks / candle updates on the event bus
- Detect dead connections (heartbeat, optional receive stall timeout)
- Reconnect with exponential backoff until the attempt budget is spent
- Warn about exchange/local clock skew

The connector holds no trading state.
"""

import asyncio
import json
import logging
from typing import Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..core.config import ReconnectConfig, StreamConfig
from ..core.constants import ConnectionState, TICKER_CHANNEL
from ..core.exceptions import (
    ConnectionLostError, FrameDecodeError, HeartbeatTimeoutError,
    ReconnectExhaustedError, TransportError,
)
from ..core.types import ClockSkewWarning, Tick
from ..events.bus import EventBus, EventTopic
from .heartbeat import HeartbeatMonitor
from .message_decoder import CandleUpdate, ErrorFrame, OkxMessageDecoder, SubscribeAck
from .reconnect import ReconnectPolicy


logger = logging.getLogger(__name__)


# Failures that end one session and trigger a reconnect
RECOVERABLE_ERRORS = (
    WebSocketException,
    OSError,
    asyncio.TimeoutError,
    TransportError,
)


class OkxStreamConnector:
    """
    Streams tickers and candles for one instrument.

    Usage:
        connector = OkxStreamConnector(stream_config, reconnect_config, bus)
        task = asyncio.create_task(connector.connect())
        ...
        await connector.close()
    """

    def __init__(
        self,
        config: StreamConfig,
        reconnect: Optional[ReconnectConfig] = None,
        bus: Optional[EventBus] = None,
        decoder: Optional[OkxMessageDecoder] = None
    ):
        """
        Initialize connector.

        Args:
            config: Stream configuration
            reconnect: Reconnect backoff configuration
            bus: Event bus to publish market data on
            decoder: Frame decoder (built from config if not given)
        """
        self.config = config
        self.bus = bus or EventBus()
        self.decoder = decoder or OkxMessageDecoder(config.symbol, config.timeframe)

        reconnect = reconnect or ReconnectConfig()
        self.policy = ReconnectPolicy(
            initial_delay_ms=reconnect.initial_delay_ms,
            multiplier=reconnect.multiplier,
            max_attempts=reconnect.max_attempts
        )

        self.state = ConnectionState.DISCONNECTED
        self.channels = [TICKER_CHANNEL, self.decoder.candle_channel]

        self._ws = None
        self._heartbeat: Optional[HeartbeatMonitor] = None
        self._closing = False
        self._running = False
        self._wake: Optional[asyncio.Event] = None
        self._finished: Optional[asyncio.Event] = None

        # Statistics
        self.frames_received = 0
        self.frames_skipped = 0
        self.sessions = 0

        logger.info(
            "OkxStreamConnector initialized: url=%s, symbol=%s, channels=%s",
            config.ws_url, config.symbol, self.channels
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Run the connection state machine until close() is called.

        Raises:
            ReconnectExhaustedError: If the stream could not be re-established
        """
        if self._running:
            raise RuntimeError("connect() is already running")

        self._running = True
        self._wake = asyncio.Event()
        self._finished = asyncio.Event()

        try:
            while not self._closing:
                self._set_state(ConnectionState.CONNECTING)
                try:
                    await self._run_session()
                except RECOVERABLE_ERRORS as e:
                    if self._closing:
                        break
                    logger.warning("Connection lost: %s", e)
                else:
                    if self._closing:
                        break
                    logger.warning("Connection closed by server")

                try:
                    delay = self.policy.next_delay()
                except ReconnectExhaustedError:
                    logger.error(
                        "Reconnect attempts exhausted (%d), giving up", self.policy.max_attempts
                    )
                    self._set_state(ConnectionState.FAILED)
                    raise

                self._set_state(ConnectionState.BACKING_OFF)
                await self._backoff(delay)
        finally:
            if self.state != ConnectionState.FAILED:
                self._set_state(ConnectionState.DISCONNECTED)
            self._running = False
            self._finished.set()

    async def close(self) -> None:
        """
        Close the stream.

        Closes the transport, cancels a pending backoff and returns only
        after connect() has unwound.
        """
        self._closing = True
        if self._wake is not None:
            self._wake.set()

        ws = self._ws
        if ws is not None:
            await ws.close()

        if self._running and self._finished is not None:
            await self._finished.wait()
        logger.info("Connector closed")

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    def get_status(self) -> dict:
        """Connection state, counters and the latest heartbeat status."""
        return {
            'state': self.state.value,
            'connected': self.is_connected,
            'sessions': self.sessions,
            'frames_received': self.frames_received,
            'frames_skipped': self.frames_skipped,
            'reconnect_attempt': self.policy.attempt,
            'heartbeat': self._heartbeat.get_status() if self._heartbeat is not None else None,
        }

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def _run_session(self) -> None:
        """One connection: handshake, subscribe, receive until closed."""
        cfg = self.config
        logger.info("Connecting to %s", cfg.ws_url)

        # Heartbeat is driven by HeartbeatMonitor, not the library
        async with websockets.connect(
            cfg.ws_url,
            ping_interval=None,
            open_timeout=cfg.open_timeout,
            close_timeout=cfg.close_timeout
        ) as ws:
            self._ws = ws
            self.sessions += 1
            try:
                if self._closing:
                    return
                self._set_state(ConnectionState.CONNECTED)
                await self._subscribe(ws)

                self._heartbeat = HeartbeatMonitor(
                    ws,
                    interval_seconds=cfg.ping_interval,
                    timeout_seconds=cfg.ping_timeout,
                    max_failures=cfg.heartbeat_max_failures
                )
                self._heartbeat.start()

                await self._receive_loop(ws)
            finally:
                if self._heartbeat is not None:
                    await self._heartbeat.stop()
                self._ws = None

    async def _subscribe(self, ws) -> None:
        """Send one subscribe request per channel."""
        for channel in self.channels:
            message = {
                "op": "subscribe",
                "args": [{"channel": channel, "instId": self.config.symbol}]
            }
            await ws.send(json.dumps(message))
            logger.info("Subscribing to %s:%s", channel, self.config.symbol)

    async def _receive_loop(self, ws) -> None:
        stall_timeout = self.config.stall_timeout

        while not self._closing:
            try:
                if stall_timeout:
                    raw = await asyncio.wait_for(ws.recv(), timeout=stall_timeout)
                else:
                    raw = await ws.recv()
            except asyncio.TimeoutError:
                logger.warning("No frame received for %.1fs, closing transport", stall_timeout)
                await ws.close(code=1011, reason="receive stalled")
                raise HeartbeatTimeoutError(
                    "Receive stalled", stall_timeout=stall_timeout
                ) from None
            except ConnectionClosed as e:
                if self._closing:
                    return
                if self._heartbeat is not None and self._heartbeat.timed_out:
                    raise HeartbeatTimeoutError(
                        "Heartbeat timed out",
                        missed_pongs=self._heartbeat.consecutive_failures
                    ) from e
                raise ConnectionLostError("Transport closed unexpectedly", reason=str(e)) from e

            self.frames_received += 1
            self._handle_frame(raw)

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    def _handle_frame(self, raw) -> None:
        try:
            decoded = self.decoder.decode(raw)
        except FrameDecodeError as e:
            self.frames_skipped += 1
            logger.warning("Skipping malformed frame: %s", e)
            return

        if decoded is None:
            return

        if isinstance(decoded, SubscribeAck):
            logger.info("Subscribed to %s:%s", decoded.channel, decoded.inst_id)
            self.policy.reset()
        elif isinstance(decoded, ErrorFrame):
            logger.error("OKX error frame: code=%s msg=%s", decoded.code, decoded.message)
        elif isinstance(decoded, CandleUpdate):
            self.bus.publish(EventTopic.CANDLE_UPDATE, decoded.bar)
        else:
            for tick in decoded:
                self._check_clock_skew(tick)
                self.bus.publish(EventTopic.TICK, tick)

    def _check_clock_skew(self, tick: Tick) -> None:
        threshold = self.config.clock_skew_threshold_ms
        skew = tick.skew_ms
        if abs(skew) <= threshold:
            return

        logger.warning(
            "Clock skew %.0fms exceeds %dms (exchange=%s, local=%s)",
            skew, threshold,
            tick.exchange_timestamp.isoformat(), tick.local_timestamp.isoformat()
        )
        self.bus.publish(
            EventTopic.CLOCK_SKEW,
            ClockSkewWarning(
                symbol=tick.symbol,
                exchange_timestamp=tick.exchange_timestamp,
                local_timestamp=tick.local_timestamp,
                skew_ms=skew,
                threshold_ms=threshold
            )
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _backoff(self, delay: float) -> None:
        """Sleep before reconnecting; close() cuts the sleep short."""
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        logger.info("Connection state: %s -> %s", self.state.value, state.value)
        self.state = state
        self.bus.publish(EventTopic.CONNECTION_STATE, state)
