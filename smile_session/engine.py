"""
engine.py — One practice session's worth of smile analytics.

SmileSessionEngine is the only writer of a session's data:
  - record()           append a reading, update the chart series
  - aggressive_trim()  drop old history under memory pressure
  - clear()            forget everything
  - finalize()         freeze duration + ratio + chart into a SessionSummary

Create a new engine for every session. Nothing here is shared between
sessions and nothing is looked up globally.

Threading:
  A single lock guards every mutation. Readers get snapshots (tuples),
  never the live list, so a compaction or trim on another thread can't
  hand them a half-updated series.
"""

import logging
import math
import threading
from typing import Optional, Sequence

from .config import TRIM_KEEP_DISPLAY, TRIM_KEEP_RAW
from .models import DetectorReading, PressureAction, SessionSummary, SmileSample
from .ratio import compute_smile_ratio_percent
from .sampler import DisplaySampler

logger = logging.getLogger(__name__)


def summarize(
    history: Sequence[SmileSample],
    display: tuple[SmileSample, ...],
    duration_seconds: float,
    extend_trailing_gap: bool = False,
    sampler: Optional[DisplaySampler] = None,
    degraded: bool = False,
) -> SessionSummary:
    """Pure: same inputs, same summary. The engine caches the first result."""
    sampler = sampler or DisplaySampler()
    return SessionSummary(
        smile_ratio_percent=compute_smile_ratio_percent(
            history, duration_seconds, extend_trailing_gap, threshold=sampler.threshold,
        ),
        display_series=sampler.bounded(display),
        duration_seconds=duration_seconds,
        sample_count=len(history),
        degraded=degraded,
        extend_trailing_gap=extend_trailing_gap,
    )


class SmileSessionEngine:
    """
    Collects readings for one session and produces its summary.

    Memory pressure (host-reported, consecutive warnings):
      level 1  → nothing dropped here
      level 2  → aggressive_trim()
      level 3+ → clear(), the session restarts empty
    """

    def __init__(
        self,
        sampler: Optional[DisplaySampler] = None,
        keep_raw: int = TRIM_KEEP_RAW,
        keep_display: int = TRIM_KEEP_DISPLAY,
    ):
        self.sampler      = sampler or DisplaySampler()
        self.keep_raw     = keep_raw
        self.keep_display = keep_display

        self._lock = threading.Lock()
        self._history: list[SmileSample] = []
        self._display: tuple[SmileSample, ...] = ()
        self._degraded = False
        self._warning_count = 0
        self._summary: Optional[SessionSummary] = None

    # ── ingest ───────────────────────────────────────────────────────────

    def record(self, sample: SmileSample) -> None:
        """Append one reading. No dedup, no reordering, no failure."""
        with self._lock:
            if self._summary is not None:
                logger.warning(f"Reading at t={sample.time_offset:.2f}s arrived after finalize — dropped")
                return
            self._history.append(sample)
            self._display = self.sampler.on_new_sample(self._display, sample, len(self._history))

    def record_reading(self, reading: DetectorReading) -> None:
        self.record(reading.to_sample())

    def record_many(self, readings: Sequence[DetectorReading]) -> int:
        for reading in readings:
            self.record_reading(reading)
        return len(readings)

    # ── snapshots ────────────────────────────────────────────────────────

    @property
    def history(self) -> tuple[SmileSample, ...]:
        with self._lock:
            return tuple(self._history)

    @property
    def display_series(self) -> tuple[SmileSample, ...]:
        return self._display

    @property
    def sample_count(self) -> int:
        return len(self._history)

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def is_finalized(self) -> bool:
        return self._summary is not None

    @property
    def summary(self) -> Optional[SessionSummary]:
        return self._summary

    def provisional_ratio_percent(self) -> float:
        """Ratio so far, measured against the last reading's time."""
        history = self.history
        if not history:
            return 0.0
        return compute_smile_ratio_percent(
            history, history[-1].time_offset, threshold=self.sampler.threshold,
        )

    # ── degradation ──────────────────────────────────────────────────────

    def clear(self) -> None:
        """Back to an empty session. A frozen summary survives."""
        with self._lock:
            self._history = []
            self._display = ()
            self._degraded = False

    def aggressive_trim(self) -> None:
        """
        Keep only the newest keep_raw readings and keep_display chart points.
        Chart points older than the oldest kept reading go too.
        Lossy: smile time before the retained window is gone for good.
        """
        with self._lock:
            dropped_raw = max(0, len(self._history) - self.keep_raw)
            if dropped_raw:
                self._history = self._history[-self.keep_raw:]

            display = self._display[-self.keep_display:]
            if dropped_raw and self._history:
                cutoff = self._history[0].time_offset
                display = tuple(p for p in display if p.time_offset >= cutoff)
            dropped_display = len(self._display) - len(display)
            self._display = display

            if dropped_raw or dropped_display:
                self._degraded = True

        logger.warning(
            f"Aggressive trim: dropped {dropped_raw} readings, "
            f"{dropped_display} chart points"
        )

    def handle_memory_pressure(self, level: int) -> PressureAction:
        """
        Apply the tiered policy for `level` consecutive warnings.
        A finalized session only holds its summary, so nothing is dropped.
        """
        if self.is_finalized:
            logger.info(f"Memory pressure level {level} after finalize — summary kept, nothing dropped")
            return PressureAction.NONE
        if level <= 1:
            logger.info("Memory pressure level 1 — no session data dropped")
            return PressureAction.NONE
        if level == 2:
            self.aggressive_trim()
            return PressureAction.TRIM

        self.clear()
        with self._lock:
            self._degraded = True
        logger.warning(f"Memory pressure level {level} — session data reset")
        return PressureAction.RESET

    def memory_warning(self) -> PressureAction:
        """
        Count one warning and act on the running total.
        The count starts over after a reset.
        """
        self._warning_count += 1
        action = self.handle_memory_pressure(self._warning_count)
        if action is PressureAction.RESET:
            self._warning_count = 0
        return action

    # ── finalize ─────────────────────────────────────────────────────────

    def finalize(self, duration_seconds: float, extend_trailing_gap: bool = False) -> SessionSummary:
        """
        Freeze the session. The first call wins: later calls return the same
        summary, whatever duration they pass, so a results screen that is
        rebuilt never sees the duration drift.

        A NaN or infinite duration is frozen as 0s.
        """
        if not math.isfinite(duration_seconds):
            logger.warning(f"Non-finite session duration {duration_seconds!r}, freezing as 0s")
            duration_seconds = 0.0

        with self._lock:
            if self._summary is not None:
                if duration_seconds != self._summary.duration_seconds:
                    logger.debug(
                        f"finalize() called again with {duration_seconds:.2f}s — "
                        f"keeping frozen {self._summary.duration_seconds:.2f}s"
                    )
                return self._summary

            self._summary = summarize(
                self._history,
                self._display,
                duration_seconds,
                extend_trailing_gap,
                sampler=self.sampler,
                degraded=self._degraded,
            )
            summary = self._summary

        logger.info(
            f"Session finalized: {summary.sample_count} readings, "
            f"{len(summary.display_series)} chart points, "
            f"{summary.smile_ratio_percent:.1f}% smiling over {summary.duration_label()}"
        )
        return summary
