"""Timeframe parsing and alignment helpers.

Timeframes are written as ``<count><unit>`` with unit ``m`` (minutes),
``h`` (hours) or ``d`` (days), e.g. ``"30m"``, ``"1h"``, ``"1d"``.
Bars are aligned to multiples of the timeframe since the Unix epoch (UTC).
"""

import re
from datetime import datetime, timedelta, timezone

from .constants import CANDLE_CHANNEL_PREFIX
from .exceptions import InvalidConfigError


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_TIMEFRAME_RE = re.compile(r"^(\d+)([mhd])$", re.IGNORECASE)

_UNIT_SECONDS = {
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
}

# OKX channel suffixes use upper case for hours and days (candle1H, candle1D)
_OKX_UNIT = {
    "m": "m",
    "h": "H",
    "d": "D",
}


def _split(timeframe: str) -> tuple:
    match = _TIMEFRAME_RE.match(timeframe.strip()) if isinstance(timeframe, str) else None
    if not match:
        raise InvalidConfigError(
            f"Invalid timeframe: {timeframe!r}",
            expected="<count><m|h|d>"
        )
    count = int(match.group(1))
    if count <= 0:
        raise InvalidConfigError(f"Timeframe must be positive: {timeframe!r}")
    return count, match.group(2).lower()


def parse_timeframe(timeframe: str) -> timedelta:
    """Convert a timeframe string to a timedelta.

    Raises:
        InvalidConfigError: if the string is not a valid timeframe
    """
    count, unit = _split(timeframe)
    return timedelta(seconds=count * _UNIT_SECONDS[unit])


def to_millis(timestamp: datetime) -> int:
    """Milliseconds since the epoch for a UTC-aware datetime."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return (timestamp - EPOCH) // timedelta(milliseconds=1)


def from_millis(millis: int) -> datetime:
    """UTC datetime from milliseconds since the epoch."""
    return EPOCH + timedelta(milliseconds=int(millis))


def floor_to_timeframe(timestamp: datetime, period: timedelta) -> datetime:
    """Align timestamp to the start of its bar period."""
    period_ms = period // timedelta(milliseconds=1)
    millis = to_millis(timestamp)
    return from_millis((millis // period_ms) * period_ms)


def is_aligned(timestamp: datetime, period: timedelta) -> bool:
    """True if timestamp is an exact multiple of period since the epoch."""
    period_ms = period // timedelta(milliseconds=1)
    return to_millis(timestamp) % period_ms == 0


def okx_candle_channel(timeframe: str) -> str:
    """OKX candle channel name for a timeframe (``"30m"`` -> ``"candle30m"``)."""
    count, unit = _split(timeframe)
    return f"{CANDLE_CHANNEL_PREFIX}{count}{_OKX_UNIT[unit]}"
