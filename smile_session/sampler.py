"""
sampler.py — Chart series for a practice session.

The full history can run to tens of thousands of readings on a long
session. The chart never needs more than a few hundred points, but it
does need the moments that tell the story: peaks, dips, and every time
the smile crossed the threshold. Two mechanisms keep the series small:

  1. Admission: a reading only joins the series if it moved far enough
     (in time OR probability) from the last admitted point. The bar
     rises as the session grows.
  2. Compaction: once the series passes COMPACTION_TRIGGER points it is
     rebuilt around its feature points and topped up with evenly spaced
     readings, down to DISPLAY_CAP.

Series are tuples. Every call returns a new tuple, so a reader holding
the old one never sees a half-built series.
"""

import logging
from typing import Sequence

from .config import (
    ADMISSION_FLOOR,
    ADMISSION_TIERS,
    COMPACTION_TRIGGER,
    DISPLAY_CAP,
    PEAK_FLOOR,
    SMILE_THRESHOLD,
    VALLEY_CEILING,
)
from .models import SmileSample

logger = logging.getLogger(__name__)


def _evenly(items: Sequence[int], count: int) -> list[int]:
    """Pick `count` items spread across `items`, first one included."""
    if count <= 0 or not items:
        return []
    count = min(count, len(items))
    return [items[k * len(items) // count] for k in range(count)]


class DisplaySampler:
    """
    Stateless rules for building a chart series.

    Holds only configuration. The series itself is owned by the engine
    and passed in on every call.
    """

    def __init__(
        self,
        cap: int = DISPLAY_CAP,
        trigger: int = COMPACTION_TRIGGER,
        threshold: float = SMILE_THRESHOLD,
    ):
        if cap < 2:
            raise ValueError(f"Display cap must keep at least both anchors, got {cap}")
        self.cap       = cap
        self.trigger   = max(trigger, cap)
        self.threshold = threshold

    # ── admission ────────────────────────────────────────────────────────

    @staticmethod
    def admission_thresholds(total_samples: int) -> tuple[float, float]:
        """(min Δtime, min Δprobability) a reading must beat to be charted."""
        for upper, min_dt, min_dp in ADMISSION_TIERS:
            if total_samples < upper:
                return min_dt, min_dp
        return ADMISSION_FLOOR

    def on_new_sample(
        self,
        series: tuple[SmileSample, ...],
        sample: SmileSample,
        total_samples: int,
    ) -> tuple[SmileSample, ...]:
        """
        Returns the series after considering one new reading.

        The reading is compared against the last ADMITTED point, not the last
        raw reading, so slow drifts still get charted eventually.
        """
        if not series:
            return (sample,)

        last = series[-1]
        min_dt, min_dp = self.admission_thresholds(total_samples)
        dt = sample.time_offset - last.time_offset
        dp = abs(sample.probability - last.probability)

        if not (dt > min_dt or dp > min_dp):
            return series

        series = series + (sample,)
        if len(series) > self.trigger:
            series = self.compact(series)
        return series

    # ── compaction ───────────────────────────────────────────────────────

    def _feature_indices(self, series: Sequence[SmileSample]) -> tuple[list[int], list[int]]:
        """
        Interior indices worth keeping, split into (crossings, extrema).

        A crossing is a point where the probability moved across the smile
        threshold since the previous point. Extrema are peaks above
        PEAK_FLOOR and valleys below VALLEY_CEILING that are not crossings.
        """
        crossings: list[int] = []
        extrema:   list[int] = []
        thr = self.threshold

        for i in range(1, len(series) - 1):
            prev = series[i - 1].probability
            cur  = series[i].probability
            nxt  = series[i + 1].probability

            if (prev <= thr < cur) or (prev > thr >= cur):
                crossings.append(i)
            elif (cur > PEAK_FLOOR and cur > prev and cur > nxt) or \
                 (cur < VALLEY_CEILING and cur < prev and cur < nxt):
                extrema.append(i)

        return crossings, extrema

    def _thin_features(self, n: int, crossings: list[int], extrema: list[int]) -> set[int]:
        """
        Too many feature points to fit under the cap.

        Crossings are kept as (before, after) pairs so each one still shows
        on the chart as an actual transition. Whatever budget is left goes
        to peaks and valleys.
        """
        kept = {0, n - 1}
        pairs = min(len(crossings), (self.cap - len(kept)) // 2)
        for i in _evenly(crossings, pairs):
            kept.add(i - 1)
            kept.add(i)

        room = self.cap - len(kept)
        spare = [i for i in extrema if i not in kept]
        kept.update(_evenly(spare, room))
        return kept

    def _fill_evenly(self, series: Sequence[SmileSample], kept: set[int]) -> None:
        """
        Top up `kept` with evenly spaced points until the cap is reached.
        A timestamp already on the chart is never added a second time.
        """
        room = self.cap - len(kept)
        if room <= 0:
            return

        seen = {series[i].time_offset for i in kept}
        candidates: list[int] = []
        for i, sample in enumerate(series):
            if sample.time_offset in seen:
                continue
            candidates.append(i)
            seen.add(sample.time_offset)

        kept.update(_evenly(candidates, room))

    def compact(self, series: Sequence[SmileSample]) -> tuple[SmileSample, ...]:
        """
        Downsample to at most `cap` points, keeping what matters visually.

        Always keeps the first and last point. Then crossings, peaks and
        valleys. Then evenly spaced fill. Output is sorted by time_offset.
        """
        n = len(series)
        if n <= 2:
            return tuple(series)

        crossings, extrema = self._feature_indices(series)
        kept = {0, n - 1, *crossings, *extrema}

        if len(kept) > self.cap:
            kept = self._thin_features(n, crossings, extrema)
        # Thinned pairs can share points, so thinning may leave room too
        self._fill_evenly(series, kept)

        ordered = sorted(kept, key=lambda i: (series[i].time_offset, i))
        logger.info(
            f"Compacted display series {n} → {len(ordered)} points "
            f"({len(crossings)} crossings, {len(extrema)} extrema)"
        )
        return tuple(series[i] for i in ordered)

    def bounded(self, series: tuple[SmileSample, ...]) -> tuple[SmileSample, ...]:
        """Series guaranteed to be within the cap, used when publishing a summary."""
        if len(series) > self.cap:
            return self.compact(series)
        return series
