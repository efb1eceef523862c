"""
Time-weighted smile ratio.

Run:
----
    pytest tests/test_ratio.py -v
"""

import random

import pytest

from smile_session.models import SmileSample
from smile_session.ratio import compute_smile_ratio_percent, smile_seconds

from .conftest import series


# ─────────────────────────────────────────────
# Worked examples
# ─────────────────────────────────────────────

def test_smile_then_neutral_counts_interval_carried_by_later_sample():
    history = series((0, 0.8), (1, 0.8), (2, 0.1), (3, 0.1))
    # 0.1s first-sample credit + the 0→1 interval carried by the reading at t=1
    assert smile_seconds(history) == pytest.approx(1.1)
    assert compute_smile_ratio_percent(history, 3) == pytest.approx(36.667, abs=0.01)


def test_single_smiling_sample_gets_only_first_sample_credit():
    history = series((0, 0.9))
    assert compute_smile_ratio_percent(history, 5) == pytest.approx(2.0)


def test_interval_before_a_neutral_reading_is_not_smiling():
    history = series((0, 0.1), (2, 0.9), (5, 0.1))
    # only 0→2 counts, carried by the reading at t=2
    assert compute_smile_ratio_percent(history, 5) == pytest.approx(40.0)


# ─────────────────────────────────────────────
# Edge cases
# ─────────────────────────────────────────────

@pytest.mark.parametrize("duration", [0, -1.0, 0.0])
def test_non_positive_duration_gives_zero(duration):
    assert compute_smile_ratio_percent(series((0, 0.9), (1, 0.9)), duration) == 0.0


@pytest.mark.parametrize("duration", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_duration_gives_zero(duration):
    history = series((0, 0.9), (1, 0.9))
    assert compute_smile_ratio_percent(history, duration) == 0.0
    assert compute_smile_ratio_percent(history, duration, extend_trailing_gap=True) == 0.0


def test_empty_history_gives_zero():
    assert compute_smile_ratio_percent((), 10) == 0.0
    assert smile_seconds(()) == 0.0


def test_all_smiling_is_full_ratio():
    history = series(*[(t, 1.0) for t in range(10)])
    assert compute_smile_ratio_percent(history, 9) == pytest.approx(100.0)


def test_all_neutral_is_zero():
    history = series(*[(t, 0.0) for t in range(10)])
    assert compute_smile_ratio_percent(history, 9) == 0.0


def test_threshold_is_strict():
    history = series((0, 0.3), (1, 0.3), (2, 0.3))
    assert compute_smile_ratio_percent(history, 2) == 0.0


def test_duplicate_timestamps_add_nothing():
    history = series((1, 0.9), (1, 0.9), (1, 0.9))
    assert compute_smile_ratio_percent(history, 2) == pytest.approx(5.0)


def test_result_always_within_bounds():
    rng = random.Random(42)
    for _ in range(200):
        n = rng.randint(0, 40)
        # includes negative and out-of-order offsets
        history = [
            SmileSample(time_offset=rng.uniform(-5, 30), probability=rng.random())
            for _ in range(n)
        ]
        duration = rng.uniform(-1, 20)
        for extend in (False, True):
            ratio = compute_smile_ratio_percent(history, duration, extend)
            assert 0.0 <= ratio <= 100.0


# ─────────────────────────────────────────────
# Trailing gap policy
# ─────────────────────────────────────────────

def test_trailing_gap_not_credited_by_default():
    history = series((0, 0.1), (1, 0.9))
    assert compute_smile_ratio_percent(history, 4) == pytest.approx(25.0)


def test_trailing_gap_credited_when_last_reading_smiles():
    history = series((0, 0.1), (1, 0.9))
    assert compute_smile_ratio_percent(history, 4, extend_trailing_gap=True) == pytest.approx(100.0)


def test_trailing_gap_ignored_when_last_reading_is_neutral():
    history = series((0, 0.9), (1, 0.9), (2, 0.1))
    without = compute_smile_ratio_percent(history, 8)
    with_gap = compute_smile_ratio_percent(history, 8, extend_trailing_gap=True)
    assert without == with_gap == pytest.approx(1.1 / 8 * 100)


def test_trailing_gap_only_covers_time_after_last_reading():
    history = series((0, 0.1), (4, 0.9))
    assert compute_smile_ratio_percent(history, 5, False) == pytest.approx(80.0)
    assert compute_smile_ratio_percent(history, 5, True) == pytest.approx(100.0)
    assert compute_smile_ratio_percent(history, 3, True) == compute_smile_ratio_percent(history, 3, False)


def test_same_input_same_output():
    history = series((0, 0.4), (0.7, 0.2), (1.3, 0.95), (2.2, 0.6))
    first = compute_smile_ratio_percent(history, 3.0, True)
    for _ in range(5):
        assert compute_smile_ratio_percent(history, 3.0, True) == first
