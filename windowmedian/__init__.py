from windowmedian.errors import EmptyStateError, InvalidArgumentError
from windowmedian.core import (
    DEFAULT_SEED, INT64MAX, INT64MIN, init_windowed_median, push_value, current_median,
    get_median, rolling_median, window_contents, sorted_contents, cursor_rank,
)
from windowmedian.reference import get_median_naive, rolling_median_naive
from windowmedian.windowed import WindowedMedian

__all__ = [
    "WindowedMedian",
    "InvalidArgumentError",
    "EmptyStateError",
    "init_windowed_median",
    "push_value",
    "current_median",
    "get_median",
    "get_median_naive",
    "rolling_median",
    "rolling_median_naive",
    "window_contents",
    "sorted_contents",
    "cursor_rank",
    "DEFAULT_SEED",
    "INT64MAX",
    "INT64MIN",
]
