"""
Integration tests for the OKX stream connector.

Each test starts a local WebSocket server that speaks the OKX public
channel protocol and runs the real connector against it.
"""

import asyncio
import json

import pytest
import websockets
from websockets.exceptions import ConnectionClosed

from okx_signals.connectors import okx_stream
from okx_signals.connectors.heartbeat import HeartbeatMonitor
from okx_signals.connectors.okx_stream import OkxStreamConnector
from okx_signals.core.config import ReconnectConfig, StreamConfig
from okx_signals.core.constants import ConnectionState
from okx_signals.core.exceptions import ReconnectExhaustedError
from okx_signals.events import EventBus, EventTopic


SYMBOL = "BTC-USDT"


def _ticker(last, ts="1704067200000"):
    return json.dumps({
        "arg": {"channel": "tickers", "instId": SYMBOL},
        "data": [{"instId": SYMBOL, "last": last, "vol24h": "100", "ts": ts}]
    })


def _stream_config(port, **overrides):
    values = dict(
        symbol=SYMBOL,
        timeframe="1m",
        ws_url=f"ws://127.0.0.1:{port}",
        ping_interval=5.0,
        ping_timeout=5.0,
        open_timeout=2.0,
        close_timeout=1.0,
    )
    values.update(overrides)
    return StreamConfig(**values)


async def _ack_subscriptions(ws, received):
    """Read both subscribe requests and acknowledge them."""
    for _ in range(2):
        message = json.loads(await ws.recv())
        received.append(message)
        await ws.send(json.dumps({"event": "subscribe", "arg": message["args"][0]}))


def _port(server):
    return server.sockets[0].getsockname()[1]


def test_subscribes_and_publishes_ticks():
    received = []

    async def handler(ws):
        try:
            await _ack_subscriptions(ws, received)
            await ws.send(_ticker("42000.1"))
            await ws.send("not json")
            await ws.send(_ticker("42000.2"))
            await ws.wait_closed()
        except ConnectionClosed:
            pass

    async def scenario():
        bus = EventBus()
        ticks, states, skews = [], [], []
        got_ticks = asyncio.Event()

        def on_tick(tick):
            ticks.append(tick)
            if len(ticks) == 2:
                got_ticks.set()

        bus.subscribe(EventTopic.TICK, on_tick)
        bus.subscribe(EventTopic.CONNECTION_STATE, states.append)
        bus.subscribe(EventTopic.CLOCK_SKEW, skews.append)

        async with websockets.serve(handler, "127.0.0.1", 0) as server:
            connector = OkxStreamConnector(_stream_config(_port(server)), ReconnectConfig(), bus)
            task = asyncio.ensure_future(connector.connect())

            await asyncio.wait_for(got_ticks.wait(), timeout=5)
            await connector.close()
            await asyncio.wait_for(task, timeout=5)

        return connector, ticks, states, skews

    connector, ticks, states, skews = asyncio.run(scenario())

    assert received == [
        {"op": "subscribe", "args": [{"channel": "tickers", "instId": SYMBOL}]},
        {"op": "subscribe", "args": [{"channel": "candle1m", "instId": SYMBOL}]},
    ]
    assert [str(t.price) for t in ticks] == ["42000.1", "42000.2"]
    assert connector.frames_skipped == 1

    # The fixed 2024 exchange timestamp is far behind local time
    assert len(skews) == 2
    assert skews[0].threshold_ms == 5000

    assert states == [
        ConnectionState.CONNECTING,
        ConnectionState.CONNECTED,
        ConnectionState.DISCONNECTED,
    ]
    assert connector.state == ConnectionState.DISCONNECTED


def test_reconnect_exhausted_when_nothing_listens(unused_port):
    async def scenario():
        bus = EventBus()
        states = []
        bus.subscribe(EventTopic.CONNECTION_STATE, states.append)
        connector = OkxStreamConnector(
            _stream_config(unused_port),
            ReconnectConfig(initial_delay_ms=1, multiplier=1.5, max_attempts=2),
            bus
        )
        with pytest.raises(ReconnectExhaustedError):
            await connector.connect()
        return connector, states

    connector, states = asyncio.run(scenario())

    assert connector.state == ConnectionState.FAILED
    assert connector.sessions == 0
    assert connector.policy.attempt == 2
    assert states[-1] == ConnectionState.FAILED
    assert states.count(ConnectionState.BACKING_OFF) == 2


def test_reconnects_after_server_drop():
    connections = []

    async def scenario():
        ready = asyncio.Event()

        async def handler(ws):
            connections.append(ws)
            try:
                await _ack_subscriptions(ws, [])
                if len(connections) == 1:
                    # Drop the first session right after subscribing
                    await ws.close()
                    return
                ready.set()
                await ws.wait_closed()
            except ConnectionClosed:
                pass

        bus = EventBus()
        async with websockets.serve(handler, "127.0.0.1", 0) as server:
            connector = OkxStreamConnector(
                _stream_config(_port(server)),
                ReconnectConfig(initial_delay_ms=10, multiplier=1.5, max_attempts=3),
                bus
            )
            task = asyncio.ensure_future(connector.connect())

            await asyncio.wait_for(ready.wait(), timeout=5)
            # Let the connector read the acknowledgements
            for _ in range(50):
                if connector.policy.attempt == 0:
                    break
                await asyncio.sleep(0.01)

            attempts_after_ack = connector.policy.attempt
            await connector.close()
            await asyncio.wait_for(task, timeout=5)

        return connector, attempts_after_ack

    connector, attempts_after_ack = asyncio.run(scenario())

    assert connector.sessions == 2
    assert attempts_after_ack == 0
    assert connector.state == ConnectionState.DISCONNECTED


def test_receive_stall_triggers_reconnect():
    sessions = []

    async def handler(ws):
        sessions.append(ws)
        try:
            # Read the subscriptions but never answer
            await ws.recv()
            await ws.recv()
            await ws.wait_closed()
        except ConnectionClosed:
            pass

    async def scenario():
        async with websockets.serve(handler, "127.0.0.1", 0) as server:
            connector = OkxStreamConnector(
                _stream_config(_port(server), stall_timeout=0.2),
                ReconnectConfig(initial_delay_ms=10, multiplier=1.5, max_attempts=1),
                EventBus()
            )
            with pytest.raises(ReconnectExhaustedError):
                await asyncio.wait_for(connector.connect(), timeout=10)
        return connector

    connector = asyncio.run(scenario())

    assert connector.sessions == 2
    assert len(sessions) == 2
    assert connector.state == ConnectionState.FAILED


def test_close_during_backoff_returns_promptly(unused_port):
    async def scenario():
        connector = OkxStreamConnector(
            _stream_config(unused_port),
            ReconnectConfig(initial_delay_ms=60_000, multiplier=1.5, max_attempts=5),
            EventBus()
        )
        task = asyncio.ensure_future(connector.connect())

        for _ in range(200):
            if connector.state == ConnectionState.BACKING_OFF:
                break
            await asyncio.sleep(0.01)
        backing_off = connector.state == ConnectionState.BACKING_OFF

        await asyncio.wait_for(connector.close(), timeout=2)
        await asyncio.wait_for(task, timeout=2)
        return connector, backing_off

    connector, backing_off = asyncio.run(scenario())

    assert backing_off
    assert connector.state == ConnectionState.DISCONNECTED


def test_malformed_frames_do_not_end_the_session():
    async def handler(ws):
        try:
            await _ack_subscriptions(ws, [])
            await ws.send(json.dumps({"arg": {"channel": 5}, "data": [1]}))
            await ws.send("[" * 200000)
            await ws.send(_ticker("42000.3"))
            await ws.wait_closed()
        except ConnectionClosed:
            pass

    async def scenario():
        bus = EventBus()
        ticks = []
        got_tick = asyncio.Event()

        def on_tick(tick):
            ticks.append(tick)
            got_tick.set()

        bus.subscribe(EventTopic.TICK, on_tick)

        async with websockets.serve(handler, "127.0.0.1", 0) as server:
            connector = OkxStreamConnector(_stream_config(_port(server)), ReconnectConfig(), bus)
            task = asyncio.ensure_future(connector.connect())

            await asyncio.wait_for(got_tick.wait(), timeout=5)
            status = connector.get_status()
            await connector.close()
            await asyncio.wait_for(task, timeout=5)

        return connector, ticks, status

    connector, ticks, status = asyncio.run(scenario())

    assert [str(t.price) for t in ticks] == ["42000.3"]
    assert connector.frames_skipped == 2
    assert connector.sessions == 1
    assert status['connected'] is True
    assert status['frames_skipped'] == 2


class _SilentPeer:
    """Connection wrapper whose pings are never answered."""

    def __init__(self, ws):
        self._ws = ws

    async def ping(self):
        return asyncio.get_running_loop().create_future()

    async def close(self, code=1000, reason=""):
        await self._ws.close(code=code, reason=reason)


def test_missing_pong_triggers_reconnect(monkeypatch):
    monitors = []

    class NoPongHeartbeat(HeartbeatMonitor):
        def __init__(self, ws, **kwargs):
            super().__init__(_SilentPeer(ws), **kwargs)
            monitors.append(self)

    monkeypatch.setattr(okx_stream, "HeartbeatMonitor", NoPongHeartbeat)

    connections = []

    async def scenario():
        reconnected = asyncio.Event()

        async def handler(ws):
            connections.append(ws)
            if len(connections) == 2:
                reconnected.set()
            try:
                await _ack_subscriptions(ws, [])
                await ws.wait_closed()
            except ConnectionClosed:
                pass

        bus = EventBus()
        states = []
        bus.subscribe(EventTopic.CONNECTION_STATE, states.append)

        async with websockets.serve(handler, "127.0.0.1", 0) as server:
            connector = OkxStreamConnector(
                _stream_config(_port(server), ping_interval=0.1, ping_timeout=0.1),
                ReconnectConfig(initial_delay_ms=10, multiplier=1.5, max_attempts=5),
                bus
            )
            task = asyncio.ensure_future(connector.connect())

            await asyncio.wait_for(reconnected.wait(), timeout=5)
            await connector.close()
            await asyncio.wait_for(task, timeout=5)

        return connector, states

    connector, states = asyncio.run(scenario())

    first = monitors[0]
    assert first.timed_out
    assert first.consecutive_failures == 1
    assert not first.is_healthy()
    assert first.get_status()['healthy'] is False
    assert connections[0].close_code == 1011

    assert connector.sessions >= 2
    assert ConnectionState.BACKING_OFF in states
    assert connector.state == ConnectionState.DISCONNECTED
