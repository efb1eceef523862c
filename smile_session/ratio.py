"""
ratio.py — Time-weighted smile ratio for a practice session.

Counts time, not readings. The detector fires at an uneven rate (frame
drops, thermal throttling, a stalled camera), so "60% of readings were
smiles" can be far from "smiled for 60% of the session".

Integration rule (forward fill, carried by the LATER sample):
  - Each reading speaks for the interval that ends at it.
    If reading i is above threshold, add t[i] - t[i-1] to smile time.
  - The very first reading has no interval before it. If it is a smile,
    it gets a small fixed credit (FIRST_SAMPLE_EPSILON) instead.
  - Optionally, the gap between the last reading and the frozen session
    duration is credited too, if the last reading was a smile.

Result = smile_time / duration * 100, clamped to [0, 100].
Pure function: same input always gives the same number.
"""

import math
from typing import Sequence

from .config import FIRST_SAMPLE_EPSILON, SMILE_THRESHOLD
from .models import SmileSample


def smile_seconds(
    history: Sequence[SmileSample],
    threshold: float = SMILE_THRESHOLD,
    first_sample_epsilon: float = FIRST_SAMPLE_EPSILON,
) -> float:
    """Total seconds judged smiling between the first and last reading."""
    if not history:
        return 0.0

    total = first_sample_epsilon if history[0].probability > threshold else 0.0
    previous = history[0]
    for sample in history[1:]:
        if sample.probability > threshold:
            total += sample.time_offset - previous.time_offset
        previous = sample
    return total


def compute_smile_ratio_percent(
    history: Sequence[SmileSample],
    total_duration_seconds: float,
    extend_trailing_gap: bool = False,
    threshold: float = SMILE_THRESHOLD,
    first_sample_epsilon: float = FIRST_SAMPLE_EPSILON,
) -> float:
    """
    Percentage of the session spent smiling.

    Args:
        history:                readings in arrival order
        total_duration_seconds: wall-clock duration frozen by the caller at stop
        extend_trailing_gap:    if True and the last reading is a smile, the time
                                from that reading to the end of the session counts
                                as smiling too. If False the tail is never credited.

    Returns 0 for an empty history or a non-positive or non-finite duration.
    """
    if not history or not math.isfinite(total_duration_seconds) or total_duration_seconds <= 0:
        return 0.0

    smile_time = smile_seconds(history, threshold, first_sample_epsilon)

    if extend_trailing_gap:
        last = history[-1]
        tail = total_duration_seconds - last.time_offset
        if last.probability > threshold and tail > 0:
            smile_time += tail

    percent = (smile_time / total_duration_seconds) * 100
    return max(0.0, min(100.0, percent))
