import numpy as np
from numba import njit
import numpy.typing as npt

from windowmedian.core import (
    STATE_BUNDLE_TYPE, NB_FLOAT64, NB_FLOAT64_ARRAY, NB_INT64, NB_INT64_ARRAY,
    PY_FLOAT, PY_FLOAT_ARRAY, PY_INT, PY_INT_ARRAY, PyStateBundleType, DEFAULT_SEED,
    _check_window_args, as_int64_array, window_contents,
)

# Brute-force medians: sort a copy of the window every time. Slow on purpose,
# only used to cross-check the cursor-based medians.

@njit(NB_FLOAT64(NB_INT64_ARRAY), fastmath=True, boundscheck=False, cache=True)
def _median_of_sorted_copy(window: PY_INT_ARRAY) -> PY_FLOAT:
    n = len(window)
    if n == 0:
        return np.float64(np.nan)
    ordered = np.sort(window)
    median = np.float64(ordered[n // 2])
    if n % 2 != 0:
        return median
    return 0.5 * np.float64(ordered[n // 2 - 1]) + 0.5 * median

@njit(NB_FLOAT64(STATE_BUNDLE_TYPE), fastmath=True, boundscheck=False, cache=True)
def get_median_naive(state_tuple: PyStateBundleType) -> PY_FLOAT:
    return _median_of_sorted_copy(window_contents(state_tuple))


def rolling_median_naive(input_array: npt.ArrayLike,
                         window_size: PY_INT) -> PY_FLOAT_ARRAY:
    _check_window_args(window_size, DEFAULT_SEED)
    values = as_int64_array(input_array)
    if len(values) == 0:
        return np.empty(0, dtype=np.float64)
    return _rolling_median_naive_numba(values, np.int64(window_size))


@njit(NB_FLOAT64_ARRAY(NB_INT64_ARRAY, NB_INT64), fastmath=True, boundscheck=False, cache=True)
def _rolling_median_naive_numba(input_array: PY_INT_ARRAY,
                                window_size: PY_INT) -> PY_FLOAT_ARRAY:
    n = len(input_array)
    output_medians = np.empty(n, dtype=np.float64)
    for i in range(n):
        start_index = max(0, i - window_size + 1)
        output_medians[i] = _median_of_sorted_copy(input_array[start_index:i + 1])
    return output_medians
