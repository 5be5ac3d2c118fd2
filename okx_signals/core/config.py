"""
Configuration loading and validation.

Configuration lives in a YAML file (see ``config/config.yaml``) and is
loaded once at startup into frozen dataclasses. Every section is optional
except ``stream.symbol``; missing keys fall back to the defaults below.
Any invalid value raises a ConfigurationError before a connection is made.
"""

import math
from dataclasses import dataclass, field, fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .constants import (
    BarSource, StrategyType, TradeMode,
    OKX_PUBLIC_WS_URL, HEARTBEAT_INTERVAL_SECONDS, HEARTBEAT_TIMEOUT_SECONDS,
    HEARTBEAT_MAX_FAILURES, INITIAL_RECONNECT_DELAY_MS, RECONNECT_MULTIPLIER,
    MAX_RECONNECT_ATTEMPTS, CLOCK_SKEW_THRESHOLD_MS, MAX_PRICE_HISTORY,
    MAX_OHLC_HISTORY, EVENT_CHANNEL_MAXSIZE,
)
from .exceptions import InvalidConfigError, MissingConfigError
from .timeframes import parse_timeframe


@dataclass(frozen=True)
class StreamConfig:
    """Market data stream settings."""
    symbol: str
    timeframe: str = "30m"
    ws_url: str = OKX_PUBLIC_WS_URL
    bar_source: BarSource = BarSource.TICKS
    ping_interval: float = HEARTBEAT_INTERVAL_SECONDS
    ping_timeout: float = HEARTBEAT_TIMEOUT_SECONDS
    heartbeat_max_failures: int = HEARTBEAT_MAX_FAILURES
    stall_timeout: Optional[float] = None
    clock_skew_threshold_ms: int = CLOCK_SKEW_THRESHOLD_MS
    open_timeout: float = 10.0
    close_timeout: float = 5.0


@dataclass(frozen=True)
class ReconnectConfig:
    """Reconnect backoff settings."""
    initial_delay_ms: int = INITIAL_RECONNECT_DELAY_MS
    multiplier: float = RECONNECT_MULTIPLIER
    max_attempts: int = MAX_RECONNECT_ATTEMPTS


@dataclass(frozen=True)
class StrategyConfig:
    """Strategy selection and indicator parameters."""
    name: StrategyType = StrategyType.COMBINED
    ema_short: int = 9
    ema_long: int = 21
    bb_length: int = 20
    bb_deviation: float = 2.0
    st_period: int = 10
    st_multiplier: float = 3.0
    fractal_period: int = 15


@dataclass(frozen=True)
class HistoryConfig:
    """Bounded history capacities."""
    max_price_history: int = MAX_PRICE_HISTORY
    max_ohlc_history: int = MAX_OHLC_HISTORY


@dataclass(frozen=True)
class ExecutionConfig:
    """Settings for the execution collaborator and signal dispatcher."""
    enabled: bool = False
    trade_size: Decimal = Decimal("0.001")
    cooldown_seconds: float = 60.0
    leverage: int = 5
    trade_mode: TradeMode = TradeMode.CROSS


@dataclass(frozen=True)
class MonitoringConfig:
    """Logging settings."""
    log_level: str = "INFO"
    log_file: Optional[str] = "data/logs/okx_signals.log"


@dataclass(frozen=True)
class EventsConfig:
    """Event distribution settings."""
    channel_maxsize: int = EVENT_CHANNEL_MAXSIZE


@dataclass(frozen=True)
class BotConfig:
    """Complete, validated configuration."""
    stream: StreamConfig
    reconnect: ReconnectConfig = field(default_factory=ReconnectConfig)
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    events: EventsConfig = field(default_factory=EventsConfig)

    @property
    def required_history(self) -> int:
        """Longest lookback the active strategy needs, in bars."""
        s = self.strategy
        if s.name == StrategyType.EMA:
            return s.ema_long + 1
        return max(s.st_period + 2, s.fractal_period + 1, s.bb_length)


# ============================================================================
# Loading
# ============================================================================

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise InvalidConfigError(f"Section '{name}' must be a mapping", section=name)
    return value


def _build(cls, values: Dict[str, Any], section: str, converters: Dict[str, Any], nullable=()):
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise InvalidConfigError(
            f"Unknown keys in section '{section}'",
            keys=sorted(unknown)
        )

    kwargs = {}
    for key, value in values.items():
        if value is None:
            if key not in nullable:
                raise InvalidConfigError(f"'{section}.{key}' must not be null", key=key)
            kwargs[key] = None
            continue
        convert = converters.get(key)
        if convert is None:
            kwargs[key] = value
            continue
        try:
            kwargs[key] = convert(value)
        except (ValueError, TypeError, OverflowError, InvalidOperation) as e:
            raise InvalidConfigError(
                f"Invalid value for '{section}.{key}': {value!r}",
                error=str(e)
            ) from e
    return cls(**kwargs)


def _upper_enum(enum_cls):
    return lambda value: enum_cls(str(value).upper())


def _lower_enum(enum_cls):
    return lambda value: enum_cls(str(value).lower())


def _float(value: Any) -> float:
    result = float(value)
    if not math.isfinite(result):
        raise ValueError("expected a finite number")
    return result


def _decimal(value: Any) -> Decimal:
    result = Decimal(str(value))
    if not result.is_finite():
        raise ValueError("expected a finite number")
    return result


def _bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError("expected true or false")


def parse_config(raw: Dict[str, Any]) -> BotConfig:
    """
    Build a validated BotConfig from a plain mapping.

    Args:
        raw: Parsed YAML document

    Returns:
        Validated configuration

    Raises:
        MissingConfigError: if a required key is absent
        InvalidConfigError: if a value fails validation
    """
    if not isinstance(raw, dict):
        raise InvalidConfigError("Configuration root must be a mapping")

    stream_raw = _section(raw, 'stream')
    if not stream_raw.get('symbol'):
        raise MissingConfigError("Missing required key 'stream.symbol'")

    config = BotConfig(
        stream=_build(StreamConfig, stream_raw, 'stream', {
            'symbol': str,
            'timeframe': str,
            'ws_url': str,
            'bar_source': _lower_enum(BarSource),
            'ping_interval': _float,
            'ping_timeout': _float,
            'heartbeat_max_failures': int,
            'stall_timeout': _float,
            'clock_skew_threshold_ms': int,
            'open_timeout': _float,
            'close_timeout': _float,
        }, nullable=('stall_timeout',)),
        reconnect=_build(ReconnectConfig, _section(raw, 'reconnect'), 'reconnect', {
            'initial_delay_ms': int,
            'multiplier': _float,
            'max_attempts': int,
        }),
        strategy=_build(StrategyConfig, _section(raw, 'strategy'), 'strategy', {
            'name': _upper_enum(StrategyType),
            'ema_short': int,
            'ema_long': int,
            'bb_length': int,
            'bb_deviation': _float,
            'st_period': int,
            'st_multiplier': _float,
            'fractal_period': int,
        }),
        history=_build(HistoryConfig, _section(raw, 'history'), 'history', {
            'max_price_history': int,
            'max_ohlc_history': int,
        }),
        execution=_build(ExecutionConfig, _section(raw, 'execution'), 'execution', {
            'enabled': _bool,
            'trade_size': _decimal,
            'cooldown_seconds': _float,
            'leverage': int,
            'trade_mode': _lower_enum(TradeMode),
        }),
        monitoring=_build(MonitoringConfig, _section(raw, 'monitoring'), 'monitoring', {
            'log_level': lambda v: str(v).upper(),
        }, nullable=('log_file',)),
        events=_build(EventsConfig, _section(raw, 'events'), 'events', {
            'channel_maxsize': int,
        }),
    )

    validate_config(config)
    return config


def validate_config(config: BotConfig) -> None:
    """
    Check cross-field constraints.

    Raises:
        InvalidConfigError: on the first violated constraint
    """
    stream = config.stream
    parse_timeframe(stream.timeframe)

    if not stream.ws_url.startswith(("ws://", "wss://")):
        raise InvalidConfigError("stream.ws_url must be a ws:// or wss:// URL", ws_url=stream.ws_url)
    if stream.ping_interval <= 0 or stream.ping_timeout <= 0:
        raise InvalidConfigError("Ping interval and timeout must be positive")
    if stream.heartbeat_max_failures < 1:
        raise InvalidConfigError("stream.heartbeat_max_failures must be >= 1")
    if stream.stall_timeout is not None and stream.stall_timeout <= 0:
        raise InvalidConfigError("stream.stall_timeout must be positive when set")
    if stream.clock_skew_threshold_ms < 0:
        raise InvalidConfigError("stream.clock_skew_threshold_ms must be >= 0")

    reconnect = config.reconnect
    if reconnect.initial_delay_ms < 0:
        raise InvalidConfigError("reconnect.initial_delay_ms must be >= 0")
    if reconnect.multiplier < 1.0:
        raise InvalidConfigError("reconnect.multiplier must be >= 1.0", multiplier=reconnect.multiplier)
    if reconnect.max_attempts < 1:
        raise InvalidConfigError("reconnect.max_attempts must be >= 1")

    strategy = config.strategy
    for name in ('ema_short', 'ema_long', 'bb_length', 'st_period', 'fractal_period'):
        if getattr(strategy, name) < 1:
            raise InvalidConfigError(f"strategy.{name} must be >= 1", value=getattr(strategy, name))
    if strategy.ema_short >= strategy.ema_long:
        raise InvalidConfigError(
            "strategy.ema_short must be shorter than strategy.ema_long",
            ema_short=strategy.ema_short,
            ema_long=strategy.ema_long
        )
    if strategy.fractal_period < 3:
        raise InvalidConfigError("strategy.fractal_period must be >= 3")
    if strategy.bb_deviation <= 0 or strategy.st_multiplier <= 0:
        raise InvalidConfigError("Band multipliers must be positive")

    history = config.history
    required = config.required_history
    if history.max_ohlc_history < required:
        raise InvalidConfigError(
            "history.max_ohlc_history is shorter than the strategy lookback",
            capacity=history.max_ohlc_history,
            required=required
        )
    if history.max_price_history < required:
        raise InvalidConfigError(
            "history.max_price_history is shorter than the strategy lookback",
            capacity=history.max_price_history,
            required=required
        )

    execution = config.execution
    if execution.trade_size <= 0:
        raise InvalidConfigError("execution.trade_size must be positive")
    if execution.cooldown_seconds < 0:
        raise InvalidConfigError("execution.cooldown_seconds must be >= 0")
    if execution.leverage < 1:
        raise InvalidConfigError("execution.leverage must be >= 1")

    if config.monitoring.log_level not in _LOG_LEVELS:
        raise InvalidConfigError("Unknown log level", log_level=config.monitoring.log_level)
    if config.events.channel_maxsize < 1:
        raise InvalidConfigError("events.channel_maxsize must be >= 1")


def load_config(path: Union[str, Path]) -> BotConfig:
    """
    Load and validate a YAML configuration file.

    Raises:
        MissingConfigError: if the file does not exist
        InvalidConfigError: if it cannot be parsed or fails validation
    """
    path = Path(path)
    if not path.exists():
        raise MissingConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, 'r') as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidConfigError(f"Cannot parse configuration file: {path}", error=str(e)) from e

    return parse_config(raw or {})
