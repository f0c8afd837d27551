import logging
import numpy as np
from numba import int64, float64, boolean, njit, types, void
import numpy.typing as npt
from typing import Tuple, TypeAlias

from windowmedian.errors import InvalidArgumentError

logger = logging.getLogger(__name__)

# Python-compatible type for the state bundle
PyStateBundleType: TypeAlias = Tuple[
    npt.NDArray[np.int64],      # window_values (one slot per node, sentinel last)
    npt.NDArray[np.int64],      # window_seqs (arrival sequence number per node)
    npt.NDArray[np.int64],      # forward_links (flat, node's links start at link_offsets[node])
    npt.NDArray[np.int64],      # link_offsets (prefix sums of node heights)
    npt.NDArray[np.int64],      # backward_links (level 0 only)
    npt.NDArray[np.int64],      # chain (scratch: predecessor per level)
    npt.NDArray[np.int64]       # _state
]

# =============================================================================
# Constants for _state array indices
# =============================================================================
IDX_STATE_HEAD = 0              # slot of the oldest value in the window
IDX_STATE_TAIL = 1              # next free slot
IDX_STATE_FILL_SIZE = 2
IDX_STATE_K_WINDOW_SIZE = 3
IDX_STATE_CURSOR = 4            # node holding the lower median
IDX_STATE_SEQ = 5
IDX_STATE_TOP_LEVEL = 6
IDX_STATE_SENTINEL = 7
STATE_ARRAY_SIZE = 8

INT64MAX = 9223372036854775807
INT64MIN = -9223372036854775808
NIL_NODE = -1
MAX_SKIPLIST_LEVELS = 24
DEFAULT_SEED = 20240607

# 31-bit LCG for node heights; bits below LCG_LEVEL_SHIFT have short periods
LCG_MULTIPLIER = 1103515245
LCG_INCREMENT = 12345
LCG_MASK = 0x7FFFFFFF
LCG_LEVEL_SHIFT = 7

# =============================================================================
# Numba type for the state bundle
# =============================================================================
STATE_BUNDLE_TYPE = types.Tuple((
    int64[:], int64[:], int64[:], int64[:], int64[:], int64[:], int64[:]
))

# =============================================================================
# Helper Numba types for readable @njit signatures
# =============================================================================
NB_VOID = void
NB_BOOL = boolean
NB_INT64 = int64
NB_FLOAT64 = float64
NB_FLOAT64_ARRAY = float64[:]
NB_INT64_ARRAY = int64[:]

# =============================================================================
# Python-compatible aliases for annotations
# =============================================================================
PY_INT = int
PY_FLOAT = float
PY_BOOL = bool
PY_FLOAT_ARRAY = npt.NDArray[np.float64]
PY_INT_ARRAY = npt.NDArray[np.int64]

# =============================================================================
# Skip list over (value, arrival sequence) keys
# =============================================================================

@njit(NB_BOOL(NB_INT64, NB_INT64, NB_INT64_ARRAY, NB_INT64_ARRAY), fastmath=True, boundscheck=False, cache=True)
def _precedes(node_a: PY_INT,
              node_b: PY_INT,
              window_values: PY_INT_ARRAY,
              window_seqs: PY_INT_ARRAY) -> PY_BOOL:
    value_a = window_values[node_a]
    value_b = window_values[node_b]
    if value_a != value_b:
        return value_a < value_b
    # equal values: older arrival sorts first
    return window_seqs[node_a] < window_seqs[node_b]

@njit(NB_VOID(NB_INT64_ARRAY, NB_INT64, NB_INT64), fastmath=True, boundscheck=False, cache=True)
def _draw_node_heights(link_offsets: PY_INT_ARRAY,
                       max_levels: PY_INT,
                       seed: PY_INT) -> None:
    # Heights belong to slots, not values: slots are recycled in FIFO order
    # and a height never depends on the key stored in it.
    _sentinel = len(link_offsets) - 2
    rng = seed & LCG_MASK
    link_offsets[0] = 0
    for node in range(_sentinel):
        rng = (rng * LCG_MULTIPLIER + LCG_INCREMENT) & LCG_MASK
        bits = rng >> LCG_LEVEL_SHIFT
        height = np.int64(1)
        while height < max_levels and (bits & 1) == 1:
            height += 1
            bits >>= 1
        link_offsets[node + 1] = link_offsets[node] + height
    link_offsets[_sentinel + 1] = link_offsets[_sentinel] + max_levels

@njit(NB_VOID(NB_INT64, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY), fastmath=True, boundscheck=False, cache=True)
def _fill_chain(node: PY_INT,
                window_values: PY_INT_ARRAY,
                window_seqs: PY_INT_ARRAY,
                forward_links: PY_INT_ARRAY,
                link_offsets: PY_INT_ARRAY,
                chain: PY_INT_ARRAY,
                _state: PY_INT_ARRAY) -> None:
    # chain[level] := last node on `level` whose key is strictly below node's key
    current = _state[IDX_STATE_SENTINEL]
    for level in range(_state[IDX_STATE_TOP_LEVEL] - 1, -1, -1):
        next_node = forward_links[link_offsets[current] + level]
        while next_node != NIL_NODE and _precedes(next_node, node, window_values, window_seqs):
            current = next_node
            next_node = forward_links[link_offsets[current] + level]
        chain[level] = current

@njit(NB_VOID(NB_INT64, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY), fastmath=True, boundscheck=False, cache=True)
def _link_node(node: PY_INT,
               window_values: PY_INT_ARRAY,
               window_seqs: PY_INT_ARRAY,
               forward_links: PY_INT_ARRAY,
               link_offsets: PY_INT_ARRAY,
               backward_links: PY_INT_ARRAY,
               chain: PY_INT_ARRAY,
               _state: PY_INT_ARRAY) -> None:
    _fill_chain(node, window_values, window_seqs, forward_links, link_offsets, chain, _state)
    height = link_offsets[node + 1] - link_offsets[node]
    top_level = _state[IDX_STATE_TOP_LEVEL]
    if height > top_level:
        sentinel = _state[IDX_STATE_SENTINEL]
        for level in range(top_level, height):
            chain[level] = sentinel
        _state[IDX_STATE_TOP_LEVEL] = height
    for level in range(height):
        prev_link = link_offsets[chain[level]] + level
        forward_links[link_offsets[node] + level] = forward_links[prev_link]
        forward_links[prev_link] = node
    backward_links[node] = chain[0]
    successor = forward_links[link_offsets[node]]
    if successor != NIL_NODE:
        backward_links[successor] = node

@njit(NB_VOID(NB_INT64, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY), fastmath=True, boundscheck=False, cache=True)
def _unlink_node(node: PY_INT,
                 window_values: PY_INT_ARRAY,
                 window_seqs: PY_INT_ARRAY,
                 forward_links: PY_INT_ARRAY,
                 link_offsets: PY_INT_ARRAY,
                 backward_links: PY_INT_ARRAY,
                 chain: PY_INT_ARRAY,
                 _state: PY_INT_ARRAY) -> None:
    # keys are unique, so the chain leads to this exact node and not to an equal value
    _fill_chain(node, window_values, window_seqs, forward_links, link_offsets, chain, _state)
    height = link_offsets[node + 1] - link_offsets[node]
    for level in range(height):
        forward_links[link_offsets[chain[level]] + level] = forward_links[link_offsets[node] + level]
    successor = forward_links[link_offsets[node]]
    if successor != NIL_NODE:
        backward_links[successor] = backward_links[node]
    sentinel_links = link_offsets[_state[IDX_STATE_SENTINEL]]
    while _state[IDX_STATE_TOP_LEVEL] > 1 and \
          forward_links[sentinel_links + _state[IDX_STATE_TOP_LEVEL] - 1] == NIL_NODE:
        _state[IDX_STATE_TOP_LEVEL] -= 1

# =============================================================================
# Median cursor
# =============================================================================

@njit(NB_VOID(NB_INT64, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY), fastmath=True, boundscheck=False, cache=True)
def _move_cursor_after_insert(new_node: PY_INT,
                              window_values: PY_INT_ARRAY,
                              forward_links: PY_INT_ARRAY,
                              link_offsets: PY_INT_ARRAY,
                              backward_links: PY_INT_ARRAY,
                              _state: PY_INT_ARRAY) -> None:
    fill_size = _state[IDX_STATE_FILL_SIZE]
    if fill_size == 1:
        _state[IDX_STATE_CURSOR] = new_node
        return
    cursor = _state[IDX_STATE_CURSOR]
    new_value = window_values[new_node]
    # the new node lands left of the cursor iff its value is smaller (newest sorts last among equals)
    if new_value < window_values[cursor] and fill_size % 2 == 0:
        _state[IDX_STATE_CURSOR] = backward_links[cursor]
    elif new_value >= window_values[cursor] and fill_size % 2 != 0:
        _state[IDX_STATE_CURSOR] = forward_links[link_offsets[cursor]]

@njit(NB_VOID(NB_INT64, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY), fastmath=True, boundscheck=False, cache=True)
def _move_cursor_before_evict(old_node: PY_INT,
                              window_values: PY_INT_ARRAY,
                              window_seqs: PY_INT_ARRAY,
                              forward_links: PY_INT_ARRAY,
                              link_offsets: PY_INT_ARRAY,
                              backward_links: PY_INT_ARRAY,
                              _state: PY_INT_ARRAY) -> None:
    fill_size = _state[IDX_STATE_FILL_SIZE]
    cursor = _state[IDX_STATE_CURSOR]
    at_or_left = old_node == cursor or _precedes(old_node, cursor, window_values, window_seqs)
    at_or_right = old_node == cursor or _precedes(cursor, old_node, window_values, window_seqs)
    if at_or_left and fill_size % 2 == 0:
        _state[IDX_STATE_CURSOR] = forward_links[link_offsets[cursor]]
    elif at_or_right and fill_size % 2 != 0:
        _state[IDX_STATE_CURSOR] = backward_links[cursor]

@njit(NB_FLOAT64(NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY, NB_INT64_ARRAY), fastmath=True, boundscheck=False, cache=True)
def _get_median_at_cursor(window_values: PY_INT_ARRAY,
                          forward_links: PY_INT_ARRAY,
                          link_offsets: PY_INT_ARRAY,
                          _state: PY_INT_ARRAY) -> PY_FLOAT:
    fill_size = _state[IDX_STATE_FILL_SIZE]
    if fill_size == 0:
        return np.float64(np.nan)
    cursor = _state[IDX_STATE_CURSOR]
    lower = np.float64(window_values[cursor])
    if fill_size % 2 != 0:
        return lower
    upper = np.float64(window_values[forward_links[link_offsets[cursor]]])
    # halves first: the int64 sum may overflow
    return 0.5 * lower + 0.5 * upper

# =============================================================================
# Public API
# =============================================================================

def _check_window_args(window_size: int, seed: int) -> None:
    if isinstance(window_size, bool) or not isinstance(window_size, (int, np.integer)):
        raise InvalidArgumentError(f"window_size must be an integer, got {type(window_size).__name__}")
    if window_size < 1:
        raise InvalidArgumentError(f"Should be: window_size >= 1, got {window_size}")
    if window_size >= INT64MAX // 4:
        raise InvalidArgumentError(f"window_size too large: {window_size}")
    if isinstance(seed, bool) or not isinstance(seed, (int, np.integer)):
        raise InvalidArgumentError(f"seed must be an integer, got {type(seed).__name__}")


def init_windowed_median(window_size: int = 1000,
                         seed: int = DEFAULT_SEED
                        ) -> PyStateBundleType:
    _check_window_args(window_size, seed)
    ws_nb = np.int64(window_size)
    seed_nb = np.int64(int(seed) & LCG_MASK)
    return _init_windowed_median_numba(ws_nb, seed_nb)


@njit(STATE_BUNDLE_TYPE(NB_INT64, NB_INT64), cache=True)
def _init_windowed_median_numba(window_size: PY_INT,
                                seed: PY_INT
                               ) -> PyStateBundleType:
    _k = np.int64(window_size)
    # one spare slot: a value is linked before the oldest one is evicted
    _slots = _k + 1
    _sentinel = _slots
    _levels = np.int64(1)
    while _levels < MAX_SKIPLIST_LEVELS and (np.int64(1) << _levels) < _slots:
        _levels += 1
    if _levels < MAX_SKIPLIST_LEVELS:
        _levels += 1
    window_values_local = np.zeros(_slots + 1, dtype=np.int64)
    window_seqs_local = np.zeros(_slots + 1, dtype=np.int64)
    link_offsets_local = np.zeros(_slots + 2, dtype=np.int64)
    _draw_node_heights(link_offsets_local, _levels, seed)
    forward_links_local = np.empty(link_offsets_local[_sentinel + 1], dtype=np.int64)
    forward_links_local[:] = NIL_NODE
    backward_links_local = np.empty(_slots + 1, dtype=np.int64)
    backward_links_local[:] = NIL_NODE
    chain_local = np.zeros(_levels, dtype=np.int64)
    _state_arr_local = np.zeros(STATE_ARRAY_SIZE, dtype=np.int64)
    _state_arr_local[IDX_STATE_HEAD] = 0
    _state_arr_local[IDX_STATE_TAIL] = 0
    _state_arr_local[IDX_STATE_FILL_SIZE] = 0
    _state_arr_local[IDX_STATE_K_WINDOW_SIZE] = _k
    _state_arr_local[IDX_STATE_CURSOR] = NIL_NODE
    _state_arr_local[IDX_STATE_SEQ] = 0
    _state_arr_local[IDX_STATE_TOP_LEVEL] = 1
    _state_arr_local[IDX_STATE_SENTINEL] = _sentinel
    return (window_values_local, window_seqs_local,
            forward_links_local, link_offsets_local,
            backward_links_local, chain_local,
            _state_arr_local)

@njit(NB_VOID(STATE_BUNDLE_TYPE, NB_INT64), fastmath=True, boundscheck=False, cache=True)
def push_value(state_tuple: PyStateBundleType, new_value: PY_INT) -> None:
    window_values, window_seqs, \
    forward_links, link_offsets, \
    backward_links, chain, _state_arr = state_tuple
    k_window_size = _state_arr[IDX_STATE_K_WINDOW_SIZE]
    _slots = k_window_size + 1

    _new_node = _state_arr[IDX_STATE_TAIL]
    window_values[_new_node] = new_value
    window_seqs[_new_node] = _state_arr[IDX_STATE_SEQ]
    _state_arr[IDX_STATE_SEQ] += 1
    _link_node(_new_node, window_values, window_seqs, forward_links,
               link_offsets, backward_links, chain, _state_arr)
    _state_arr[IDX_STATE_TAIL] = (_new_node + 1) % _slots
    _state_arr[IDX_STATE_FILL_SIZE] += 1
    _move_cursor_after_insert(_new_node, window_values, forward_links,
                              link_offsets, backward_links, _state_arr)

    if _state_arr[IDX_STATE_FILL_SIZE] > k_window_size:
        _old_node = _state_arr[IDX_STATE_HEAD]
        _move_cursor_before_evict(_old_node, window_values, window_seqs,
                                  forward_links, link_offsets, backward_links, _state_arr)
        _unlink_node(_old_node, window_values, window_seqs, forward_links,
                     link_offsets, backward_links, chain, _state_arr)
        _state_arr[IDX_STATE_HEAD] = (_old_node + 1) % _slots
        _state_arr[IDX_STATE_FILL_SIZE] -= 1

@njit(NB_FLOAT64(STATE_BUNDLE_TYPE), fastmath=True, boundscheck=False, cache=True)
def current_median(state_tuple: PyStateBundleType) -> PY_FLOAT:
    window_values, _, forward_links, link_offsets, _, _, _state_arr = state_tuple
    return _get_median_at_cursor(window_values, forward_links, link_offsets, _state_arr)

@njit(NB_FLOAT64(STATE_BUNDLE_TYPE, NB_INT64), fastmath=True, boundscheck=False, cache=True)
def get_median(state_tuple: PyStateBundleType, new_value: PY_INT) -> PY_FLOAT:
    push_value(state_tuple, new_value)
    return current_median(state_tuple)

# =============================================================================
# Introspection (O(W), for checks and tests)
# =============================================================================

@njit(NB_INT64_ARRAY(STATE_BUNDLE_TYPE), cache=True)
def window_contents(state_tuple: PyStateBundleType) -> PY_INT_ARRAY:
    window_values, _, _, _, _, _, _state_arr = state_tuple
    fill_size = _state_arr[IDX_STATE_FILL_SIZE]
    _slots = _state_arr[IDX_STATE_K_WINDOW_SIZE] + 1
    out = np.empty(fill_size, dtype=np.int64)
    slot = _state_arr[IDX_STATE_HEAD]
    for i in range(fill_size):
        out[i] = window_values[slot]
        slot = (slot + 1) % _slots
    return out

@njit(NB_INT64_ARRAY(STATE_BUNDLE_TYPE), cache=True)
def sorted_contents(state_tuple: PyStateBundleType) -> PY_INT_ARRAY:
    window_values, _, forward_links, link_offsets, _, _, _state_arr = state_tuple
    out = np.empty(_state_arr[IDX_STATE_FILL_SIZE], dtype=np.int64)
    node = forward_links[link_offsets[_state_arr[IDX_STATE_SENTINEL]]]
    i = 0
    while node != NIL_NODE and i < len(out):
        out[i] = window_values[node]
        node = forward_links[link_offsets[node]]
        i += 1
    return out

@njit(NB_INT64(STATE_BUNDLE_TYPE), cache=True)
def cursor_rank(state_tuple: PyStateBundleType) -> PY_INT:
    _, _, forward_links, link_offsets, _, _, _state_arr = state_tuple
    if _state_arr[IDX_STATE_FILL_SIZE] == 0:
        return NIL_NODE
    cursor = _state_arr[IDX_STATE_CURSOR]
    node = forward_links[link_offsets[_state_arr[IDX_STATE_SENTINEL]]]
    rank = np.int64(0)
    while node != NIL_NODE:
        if node == cursor:
            return rank
        node = forward_links[link_offsets[node]]
        rank += 1
    return NIL_NODE

# =============================================================================
# Batch driver
# =============================================================================

def rolling_median(input_array: npt.ArrayLike,
                   window_size: int,
                   seed: int = DEFAULT_SEED) -> PY_FLOAT_ARRAY:
    _check_window_args(window_size, seed)
    values = as_int64_array(input_array)
    if len(values) == 0:
        return np.empty(0, dtype=np.float64)
    logger.debug("rolling_median: %d values, window_size=%d", len(values), window_size)
    return _rolling_median_numba(values, np.int64(window_size), np.int64(int(seed) & LCG_MASK))


@njit(NB_FLOAT64_ARRAY(NB_INT64_ARRAY, NB_INT64, NB_INT64), fastmath=True, boundscheck=False, cache=True)
def _rolling_median_numba(input_array: PY_INT_ARRAY,
                          window_size: PY_INT,
                          seed: PY_INT) -> PY_FLOAT_ARRAY:
    n = len(input_array)
    output_medians = np.empty(n, dtype=np.float64)
    state_tuple = _init_windowed_median_numba(window_size, seed)
    for i in range(n):
        output_medians[i] = get_median(state_tuple, input_array[i])
    return output_medians


def as_int64_array(input_array: npt.ArrayLike) -> PY_INT_ARRAY:
    values = np.asarray(input_array)
    if values.ndim != 1:
        raise InvalidArgumentError(f"input must be a 1D array, got ndim={values.ndim}")
    if values.size == 0:
        return np.empty(0, dtype=np.int64)
    if values.dtype == np.bool_ or not np.issubdtype(values.dtype, np.integer):
        raise InvalidArgumentError(f"input must hold integers, got dtype={values.dtype}")
    if values.dtype == np.uint64 and values.max() > INT64MAX:
        raise InvalidArgumentError("input holds values above the int64 range")
    return np.ascontiguousarray(values, dtype=np.int64)
