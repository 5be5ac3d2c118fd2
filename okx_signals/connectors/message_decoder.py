"""
Message Decoder for OKX public WebSocket frames.

Turns raw text frames into typed messages:
1. Subscribe acknowledgements  {"event":"subscribe","arg":{...}}
2. Error frames                {"event":"error","code":"...","msg":"..."}
3. Ticker pushes               {"arg":{"channel":"tickers",...},"data":[{...}]}
4. Candle pushes               {"arg":{"channel":"candle30m",...},"data":[[...]]}

Anything malformed raises FrameDecodeError; the connector logs and skips it.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Union

from ..core.constants import CANDLE_CHANNEL_PREFIX, TICKER_CHANNEL
from ..core.exceptions import FrameDecodeError, InvalidBarError
from ..core.timeframes import from_millis, okx_candle_channel, parse_timeframe
from ..core.types import Bar, Tick


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscribeAck:
    """Server confirmation of a channel subscription."""
    channel: str
    inst_id: str


@dataclass(frozen=True)
class ErrorFrame:
    """Error reported by the server (e.g. unknown instrument)."""
    code: str
    message: str


@dataclass(frozen=True)
class CandleUpdate:
    """Candle push; bar.complete mirrors the exchange confirm flag."""
    bar: Bar
    confirmed: bool


Decoded = Union[SubscribeAck, ErrorFrame, CandleUpdate, List[Tick], None]


class OkxMessageDecoder:
    """Decodes frames for one instrument and timeframe."""

    # Index of the confirm flag in a candle array
    CONFIRM_INDEX = 8

    def __init__(
        self,
        symbol: str,
        timeframe: str,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize decoder.

        Args:
            symbol: Instrument id (e.g., "BTC-USDT-SWAP")
            timeframe: Bar timeframe (e.g., "30m")
            clock: Returns the local receive time; defaults to UTC now
        """
        self.symbol = symbol
        self.timeframe = timeframe
        self.period = parse_timeframe(timeframe)
        self.candle_channel = okx_candle_channel(timeframe)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def decode(self, raw: Union[str, bytes]) -> Decoded:
        """
        Decode one frame.

        Returns:
            SubscribeAck, ErrorFrame, CandleUpdate, a list of Ticks, or None
            for frames that carry nothing of interest (e.g. "pong")

        Raises:
            FrameDecodeError: If the frame is not valid for its channel
        """
        received_at = self._clock()

        if isinstance(raw, bytes):
            try:
                raw = raw.decode('utf-8')
            except UnicodeDecodeError as e:
                raise FrameDecodeError("Frame is not UTF-8", error=str(e)) from e

        if raw == 'pong':
            return None

        try:
            message = json.loads(raw)
        except (ValueError, RecursionError) as e:
            raise FrameDecodeError("Frame is not valid JSON", frame=raw[:200]) from e

        if not isinstance(message, dict):
            raise FrameDecodeError("Frame is not a JSON object", frame=raw[:200])

        event = message.get('event')
        if event == 'subscribe':
            arg = message.get('arg') or {}
            if not isinstance(arg, dict):
                raise FrameDecodeError("Subscribe acknowledgement without arg object", frame=raw[:200])
            return SubscribeAck(channel=str(arg.get('channel', '')), inst_id=str(arg.get('instId', '')))
        if event == 'error':
            return ErrorFrame(code=str(message.get('code', '')), message=str(message.get('msg', '')))
        if event is not None:
            logger.debug("Ignoring event frame: %s", event)
            return None

        data = message.get('data')
        if data is None:
            logger.debug("Ignoring frame without data: %s", raw[:200])
            return None

        arg = message.get('arg')
        if not isinstance(arg, dict) or 'channel' not in arg:
            raise FrameDecodeError("Data frame without channel", frame=raw[:200])
        if not isinstance(data, list) or not data:
            raise FrameDecodeError("Data frame with empty data", channel=arg['channel'])

        channel = arg['channel']
        inst_id = arg.get('instId', self.symbol)
        if not isinstance(channel, str) or not isinstance(inst_id, str):
            raise FrameDecodeError("Channel and instId must be strings", frame=raw[:200])

        if channel == TICKER_CHANNEL:
            return [self._decode_ticker(item, inst_id, received_at) for item in data]
        if channel == self.candle_channel:
            return self._decode_candle(data[0], inst_id)
        if channel.startswith(CANDLE_CHANNEL_PREFIX):
            logger.debug("Ignoring candle channel %s (expecting %s)", channel, self.candle_channel)
            return None

        logger.debug("Ignoring unknown channel: %s", channel)
        return None

    def _decode_ticker(self, item: Dict[str, Any], inst_id: str, received_at: datetime) -> Tick:
        if not isinstance(item, dict):
            raise FrameDecodeError("Ticker item is not an object", channel=TICKER_CHANNEL)

        for key in ('last', 'ts'):
            if key not in item:
                raise FrameDecodeError(f"Ticker missing field: {key}", channel=TICKER_CHANNEL)

        price = self._decimal(item['last'], 'last')
        if price <= 0:
            raise FrameDecodeError(f"Ticker price must be positive, got {price}", channel=TICKER_CHANNEL)

        # vol24h is informational; bars count one unit per tick
        volume = self._decimal(item.get('vol24h', '0'), 'vol24h')

        symbol = item.get('instId', inst_id)
        if not isinstance(symbol, str):
            raise FrameDecodeError("Ticker instId must be a string", channel=TICKER_CHANNEL)

        return Tick(
            symbol=symbol,
            price=price,
            volume=volume,
            exchange_timestamp=self._millis(item['ts'], 'ts'),
            local_timestamp=received_at
        )

    def _decode_candle(self, row: Any, inst_id: str) -> CandleUpdate:
        if not isinstance(row, list) or len(row) < 6:
            raise FrameDecodeError("Candle row must have at least 6 fields", channel=self.candle_channel)

        open_time = self._millis(row[0], 'ts')
        confirmed = len(row) > self.CONFIRM_INDEX and str(row[self.CONFIRM_INDEX]) == '1'

        try:
            bar = Bar(
                symbol=inst_id,
                open_time=open_time,
                close_time=open_time + self.period,
                open=self._decimal(row[1], 'o'),
                high=self._decimal(row[2], 'h'),
                low=self._decimal(row[3], 'l'),
                close=self._decimal(row[4], 'c'),
                volume=self._decimal(row[5], 'vol'),
                complete=confirmed
            )
        except InvalidBarError as e:
            raise FrameDecodeError(f"Inconsistent candle: {e}", channel=self.candle_channel) from e

        return CandleUpdate(bar=bar, confirmed=confirmed)

    @staticmethod
    def _decimal(value: Any, name: str) -> Decimal:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise FrameDecodeError(f"Field {name} is not numeric: {value!r}") from e
        if not result.is_finite():
            raise FrameDecodeError(f"Field {name} is not finite: {value!r}")
        return result

    @staticmethod
    def _millis(value: Any, name: str) -> datetime:
        try:
            return from_millis(int(value))
        except (TypeError, ValueError, OverflowError, OSError) as e:
            raise FrameDecodeError(f"Field {name} is not a millisecond timestamp: {value!r}") from e
