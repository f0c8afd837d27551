import logging
from typing import Iterable, List

import numpy as np

from windowmedian.core import (
    DEFAULT_SEED, IDX_STATE_FILL_SIZE, IDX_STATE_K_WINDOW_SIZE, INT64MAX, INT64MIN,
    current_median, cursor_rank, init_windowed_median, push_value, sorted_contents,
    window_contents,
)
from windowmedian.errors import EmptyStateError, InvalidArgumentError
from windowmedian.reference import get_median_naive

logger = logging.getLogger(__name__)


def _as_int64(value: int) -> np.int64:
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)):
        raise InvalidArgumentError(f"value must be an integer, got {type(value).__name__}")
    if not INT64MIN <= int(value) <= INT64MAX:
        raise InvalidArgumentError(f"value outside the int64 range: {value}")
    return np.int64(value)


class WindowedMedian:
    """Median of the most recent ``window_size`` integers of a stream.

    ``insert`` costs O(log W) expected, ``median`` is O(1): a cursor into a
    skip list is kept on the lower median and moved by at most one node per
    insertion or eviction. Not thread-safe; guard a shared instance with one lock.

    >>> wm = WindowedMedian(3)
    >>> for v in (1, 2, 3, 4):
    ...     wm.insert(v)
    >>> wm.median()
    3.0
    """

    def __init__(self, window_size: int = 1000, seed: int = DEFAULT_SEED) -> None:
        self._state = init_windowed_median(window_size, seed)
        logger.debug("windowed median created: window_size=%d seed=%d", window_size, seed)

    @property
    def window_size(self) -> int:
        return int(self._state[-1][IDX_STATE_K_WINDOW_SIZE])

    def __len__(self) -> int:
        return int(self._state[-1][IDX_STATE_FILL_SIZE])

    def __repr__(self) -> str:
        return f"{type(self).__name__}(window_size={self.window_size}, size={len(self)})"

    def insert(self, value: int) -> None:
        push_value(self._state, _as_int64(value))

    def extend(self, values: Iterable[int]) -> None:
        # validate everything first so a bad element leaves the window untouched
        checked = [_as_int64(v) for v in values]
        for value in checked:
            push_value(self._state, value)

    def median(self) -> float:
        if len(self) == 0:
            raise EmptyStateError("median() called before any insert()")
        return float(current_median(self._state))

    def median_naive(self) -> float:
        """Same as ``median`` but by sorting a copy of the window."""
        if len(self) == 0:
            raise EmptyStateError("median_naive() called before any insert()")
        return float(get_median_naive(self._state))

    def window(self) -> List[int]:
        """Window contents, oldest first."""
        return window_contents(self._state).tolist()

    def sorted_window(self) -> List[int]:
        return sorted_contents(self._state).tolist()

    def cursor_rank(self) -> int:
        """Sorted index of the median cursor, -1 while empty."""
        return int(cursor_rank(self._state))
