"""
Bounded Series - Fixed-capacity history buffers.

Price and bar history are kept in memory only, bounded so a long running
process never grows without limit.
"""

from collections import deque
from typing import Deque, Generic, Iterable, Iterator, List, Optional, Sequence, TypeVar, Union, overload

import pandas as pd

from ..core.types import Bar


T = TypeVar("T")


class BoundedSeries(Generic[T]):
    """
    Ordered sequence of the most recent N elements.

    Uses deque for O(1) append and automatic size limiting: once capacity
    is reached the oldest element is evicted (FIFO).
    """

    def __init__(self, capacity: int, items: Optional[Iterable[T]] = None):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._items: Deque[T] = deque(maxlen=capacity)
        if items is not None:
            self._items.extend(items)

    def append(self, item: T) -> None:
        """Add item, evicting the oldest one when full."""
        self._items.append(item)

    def extend(self, items: Iterable[T]) -> None:
        for item in items:
            self._items.append(item)

    def last(self) -> Optional[T]:
        """Most recent element, or None when empty."""
        if not self._items:
            return None
        return self._items[-1]

    def tail(self, count: int) -> List[T]:
        """The ``count`` most recent elements, oldest first."""
        if count <= 0:
            return []
        items = list(self._items)
        return items[-count:]

    def to_list(self) -> List[T]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    @property
    def is_full(self) -> bool:
        return len(self._items) == self.capacity

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    @overload
    def __getitem__(self, index: int) -> T: ...

    @overload
    def __getitem__(self, index: slice) -> List[T]: ...

    def __getitem__(self, index: Union[int, slice]):
        if isinstance(index, slice):
            return list(self._items)[index]
        return self._items[index]

    def __repr__(self) -> str:
        return f"BoundedSeries(capacity={self.capacity}, len={len(self._items)})"


def bars_to_frame(bars: Sequence[Bar]) -> pd.DataFrame:
    """
    Convert bars to an OHLCV DataFrame indexed by open time.

    Prices are converted to float64 for vectorized indicator math.

    Args:
        bars: Bars in chronological order

    Returns:
        DataFrame with open, high, low, close, volume columns
    """
    df = pd.DataFrame({
        'timestamp': [bar.open_time for bar in bars],
        'open': [float(bar.open) for bar in bars],
        'high': [float(bar.high) for bar in bars],
        'low': [float(bar.low) for bar in bars],
        'close': [float(bar.close) for bar in bars],
        'volume': [float(bar.volume) for bar in bars],
    })
    df = df.astype({
        'open': 'float64',
        'high': 'float64',
        'low': 'float64',
        'close': 'float64',
        'volume': 'float64'
    })
    df.set_index('timestamp', inplace=True)
    return df
