import pytest
import numpy as np

from windowmedian import (
    WindowedMedian, InvalidArgumentError, EmptyStateError, INT64MAX, INT64MIN,
)

# --- Hand-picked streams: (window_size, stream) ---
HAND_PICKED_STREAMS = [
    (3, [1, 2, 3, 4, 5, 6, 7, 8, 9]),
    (3, [9, 8, 7, 6, 5, 4, 3, 2, 1]),
    (4, [9, 8, 7, 6, 5, 4, 5, 6]),
    (3, [3, 3, 3, 3, 3, 3, 3, 3, 3]),
    (3, [3, 3, 3, 3, -7, 3, 3, 3, 3]),
    (5, [4, 3, 3, -5, 7, 1, 3, 4, 5]),
    (6, [470211272, 101027544, 1457850878, 1458777923, 2007237709, 823564440,
         1115438165, 1784484492, 74243042, 114807987]),
]


def medians_of(window_size: int, stream) -> list:
    wm = WindowedMedian(window_size)
    out = []
    for value in stream:
        wm.insert(value)
        out.append(wm.median())
    return out


@pytest.mark.parametrize("window_size, stream, expected", [
    (3, [1, 2, 3, 4, 5, 6, 7, 8, 9], [1, 1.5, 2, 3, 4, 5, 6, 7, 8]),
    (4, [9, 8, 7, 6, 5, 4, 5, 6], [9, 8.5, 8, 7.5, 6.5, 5.5, 5, 5]),
    (3, [3, 3, 3, 3, -7, 3, 3, 3, 3], [3] * 9),
])
def test_known_median_sequences(window_size, stream, expected):
    assert medians_of(window_size, stream) == expected


@pytest.mark.parametrize("window_size, stream", HAND_PICKED_STREAMS)
def test_hand_picked_streams_match_naive(window_size, stream):
    wm = WindowedMedian(window_size)
    for value in stream:
        wm.insert(value)
        assert wm.median() == wm.median_naive()


@pytest.mark.parametrize("window_size, stream", HAND_PICKED_STREAMS)
def test_invariants_hold_after_every_insert(window_size, stream):
    wm = WindowedMedian(window_size)
    for i, value in enumerate(stream):
        wm.insert(value)
        n = min(i + 1, window_size)
        assert len(wm) == n
        assert wm.window() == stream[max(0, i + 1 - window_size):i + 1]
        assert wm.sorted_window() == sorted(wm.window())
        assert wm.cursor_rank() == (n - 1) // 2


@pytest.mark.parametrize("seed", [0, 1, 7, 42, 2024])
def test_random_streams_match_naive(seed):
    # same shape as the original driver: short streams, small windows, big negative values
    rng = np.random.default_rng(seed)
    for _ in range(92):
        n = int(rng.integers(1, 21))
        window_size = int(rng.integers(1, 11))
        stream = rng.integers(-2**31, 0, size=n)
        wm = WindowedMedian(window_size, seed=seed)
        for value in stream:
            wm.insert(value)
            assert wm.median() == wm.median_naive()


@pytest.mark.parametrize("window_size", [1, 2, 3, 4, 7, 8, 31, 64])
def test_many_duplicates_keep_cursor_on_lower_median(window_size):
    rng = np.random.default_rng(window_size)
    stream = rng.integers(-2, 3, size=400).tolist()
    wm = WindowedMedian(window_size)
    for i, value in enumerate(stream):
        wm.insert(value)
        n = min(i + 1, window_size)
        ordered = sorted(stream[max(0, i + 1 - window_size):i + 1])
        assert wm.cursor_rank() == (n - 1) // 2
        assert wm.sorted_window() == ordered
        if n % 2:
            assert wm.median() == ordered[(n - 1) // 2]
        else:
            assert wm.median() == (ordered[n // 2 - 1] + ordered[n // 2]) / 2


@pytest.mark.parametrize("window_size", [1, 2, 5, 6])
def test_window_of_equal_values(window_size):
    wm = WindowedMedian(window_size)
    for _ in range(3 * window_size):
        wm.insert(-11)
        assert wm.median() == -11


def test_large_window_against_naive():
    rng = np.random.default_rng(12345)
    wm = WindowedMedian(257)
    for value in rng.integers(-1000, 1000, size=3000):
        wm.insert(value)
        assert wm.median() == wm.median_naive()
    assert len(wm) == 257
    assert wm.cursor_rank() == 128


def test_seed_does_not_change_medians():
    rng = np.random.default_rng(3)
    stream = rng.integers(-50, 50, size=500).tolist()
    assert medians_of(10, stream) == medians_of(10, stream)
    a = WindowedMedian(10, seed=1)
    b = WindowedMedian(10, seed=99)
    for value in stream:
        a.insert(value)
        b.insert(value)
        assert a.median() == b.median()


def test_even_mean_does_not_overflow():
    wm = WindowedMedian(2)
    wm.insert(INT64MIN)
    wm.insert(INT64MAX)
    assert wm.median() == 0.0
    wm.insert(INT64MAX)
    assert wm.median() == pytest.approx(float(INT64MAX))


def test_extend_and_repr():
    wm = WindowedMedian(4)
    wm.extend([5, 1, 4])
    assert wm.window() == [5, 1, 4]
    assert wm.median() == 4
    assert repr(wm) == "WindowedMedian(window_size=4, size=3)"
    assert wm.window_size == 4


def test_numpy_integers_are_accepted():
    wm = WindowedMedian(3)
    wm.insert(np.int32(4))
    wm.insert(np.uint8(2))
    assert wm.median() == 3.0


# --- Errors ---

@pytest.mark.parametrize("window_size", [0, -1, -100, 2.5, "3", None, True])
def test_invalid_window_size_is_rejected(window_size):
    with pytest.raises(InvalidArgumentError):
        WindowedMedian(window_size)


def test_invalid_argument_is_a_value_error():
    with pytest.raises(ValueError):
        WindowedMedian(0)


def test_median_before_insert_raises():
    wm = WindowedMedian(3)
    assert wm.cursor_rank() == -1
    with pytest.raises(EmptyStateError):
        wm.median()
    with pytest.raises(EmptyStateError):
        wm.median_naive()


@pytest.mark.parametrize("value", [1.5, "1", None, True, INT64MAX + 1, INT64MIN - 1])
def test_bad_values_are_rejected_without_side_effects(value):
    wm = WindowedMedian(3)
    wm.insert(10)
    with pytest.raises(InvalidArgumentError):
        wm.insert(value)
    assert wm.window() == [10]
    assert wm.median() == 10


def test_extend_is_all_or_nothing():
    wm = WindowedMedian(3)
    with pytest.raises(InvalidArgumentError):
        wm.extend([1, 2, 3.0])
    assert len(wm) == 0
