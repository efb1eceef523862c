"""
Session engine: ingest, memory pressure, finalize.

Run:
----
    pytest tests/test_engine.py -v
"""

import random
import threading

import pytest
from pydantic import ValidationError

from smile_session.engine import SmileSessionEngine, summarize
from smile_session.models import DetectorReading, PressureAction, SmileSample


def feed(engine: SmileSessionEngine, pairs) -> None:
    for t, p in pairs:
        engine.record(SmileSample(time_offset=t, probability=p))


def noisy(n: int, seed: int = 11, spacing: float = 0.07):
    rng = random.Random(seed)
    return [(i * spacing, rng.random()) for i in range(n)]


# ─────────────────────────────────────────────
# Ingest
# ─────────────────────────────────────────────

@pytest.mark.parametrize("raw,expected", [
    (1.7, 1.0),
    (-0.2, 0.0),
    (float("nan"), 0.0),
    (0.42, 0.42),
])
def test_probability_clamped_at_the_boundary(raw, expected):
    assert SmileSample(time_offset=0.0, probability=raw).probability == expected


def test_sample_is_immutable():
    sample = SmileSample(time_offset=1.0, probability=0.5)
    with pytest.raises(Exception):
        sample.probability = 0.9


def test_no_face_means_zero_probability():
    reading = DetectorReading(time_offset=2.0, probability=0.9, face_detected=False)
    assert reading.to_sample().probability == 0.0


def test_record_keeps_every_reading_in_arrival_order():
    engine = SmileSessionEngine()
    feed(engine, [(0, 0.5), (0.05, 0.5), (0.05, 0.5), (0.01, 0.9)])
    assert [s.time_offset for s in engine.history] == [0, 0.05, 0.05, 0.01]
    assert engine.sample_count == 4
    assert engine.display_series[0].time_offset == 0


def test_record_many_converts_readings():
    engine = SmileSessionEngine()
    processed = engine.record_many([
        DetectorReading(time_offset=0.0, probability=0.8),
        DetectorReading(time_offset=0.1, probability=0.8, face_detected=False),
    ])
    assert processed == 2
    assert [s.probability for s in engine.history] == [0.8, 0.0]


def test_concurrent_writers_lose_nothing():
    engine = SmileSessionEngine()

    def writer(offset: int):
        for i in range(500):
            engine.record(SmileSample(time_offset=offset + i * 0.01, probability=(i % 7) / 7))

    threads = [threading.Thread(target=writer, args=(k * 100,)) for k in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert engine.sample_count == 2000
    assert len(engine.display_series) <= engine.sampler.trigger


def test_long_session_summary_series_within_cap():
    engine = SmileSessionEngine()
    feed(engine, [(i * 0.05, float(i % 2)) for i in range(2500)])
    summary = engine.finalize(125.0)
    assert len(summary.display_series) <= 800


# ─────────────────────────────────────────────
# Memory pressure
# ─────────────────────────────────────────────

def test_aggressive_trim_keeps_only_recent_window():
    engine = SmileSessionEngine()
    feed(engine, noisy(2000))
    engine.aggressive_trim()

    history = engine.history
    assert len(history) == 500
    assert len(engine.display_series) <= 300
    oldest_kept = history[0].time_offset
    assert history[0].time_offset == pytest.approx(1500 * 0.07)
    assert all(p.time_offset >= oldest_kept for p in engine.display_series)
    assert engine.degraded


def test_trim_on_small_session_drops_nothing():
    engine = SmileSessionEngine()
    feed(engine, noisy(50))
    engine.aggressive_trim()
    assert engine.sample_count == 50
    assert not engine.degraded


def test_pressure_tiers():
    engine = SmileSessionEngine()
    feed(engine, noisy(800))

    assert engine.handle_memory_pressure(1) is PressureAction.NONE
    assert engine.sample_count == 800

    assert engine.handle_memory_pressure(2) is PressureAction.TRIM
    assert engine.sample_count == 500

    assert engine.handle_memory_pressure(3) is PressureAction.RESET
    assert engine.sample_count == 0
    assert engine.display_series == ()
    assert engine.degraded

    assert engine.handle_memory_pressure(7) is PressureAction.RESET


def test_reset_session_reports_zero():
    engine = SmileSessionEngine()
    feed(engine, [(0, 0.9), (5, 0.9)])
    engine.handle_memory_pressure(3)
    summary = engine.finalize(10.0)
    assert summary.smile_ratio_percent == 0.0
    assert summary.degraded


def test_memory_warning_counts_and_restarts_after_reset():
    engine = SmileSessionEngine()
    feed(engine, noisy(600))
    actions = [engine.memory_warning() for _ in range(4)]
    assert actions == [PressureAction.NONE, PressureAction.TRIM, PressureAction.RESET, PressureAction.NONE]


def test_clear_empties_everything():
    engine = SmileSessionEngine()
    feed(engine, noisy(30))
    engine.clear()
    assert engine.history == ()
    assert engine.display_series == ()
    assert not engine.degraded


# ─────────────────────────────────────────────
# Finalize
# ─────────────────────────────────────────────

def test_finalize_ratio_and_duration():
    engine = SmileSessionEngine()
    feed(engine, [(0, 0.8), (1, 0.8), (2, 0.1), (3, 0.1)])
    summary = engine.finalize(3.0)
    assert summary.smile_ratio_percent == pytest.approx(36.667, abs=0.01)
    assert summary.duration_seconds == 3.0
    assert summary.sample_count == 4
    assert not summary.degraded


def test_finalize_twice_is_identical_and_duration_frozen():
    engine = SmileSessionEngine()
    feed(engine, noisy(300))
    first = engine.finalize(25.0, extend_trailing_gap=True)
    again = engine.finalize(99.0)
    assert again is first
    assert again.duration_seconds == 25.0
    assert again.model_dump_json() == first.model_dump_json()


def test_summarize_is_pure():
    engine = SmileSessionEngine()
    feed(engine, noisy(1200))
    history, display = engine.history, engine.display_series
    a = summarize(history, display, 90.0, True)
    b = summarize(history, display, 90.0, True)
    assert a.model_dump_json() == b.model_dump_json()


def test_readings_after_finalize_are_dropped():
    engine = SmileSessionEngine()
    feed(engine, [(0, 0.9)])
    engine.finalize(1.0)
    feed(engine, [(0.5, 0.9)])
    assert engine.sample_count == 1


@pytest.mark.parametrize("level", [1, 2, 3, 9])
def test_pressure_after_finalize_keeps_summary(level):
    engine = SmileSessionEngine()
    feed(engine, [(0, 0.9), (1, 0.9)])
    frozen = engine.finalize(2.0)

    assert engine.handle_memory_pressure(level) is PressureAction.NONE
    assert engine.is_finalized
    assert engine.summary is frozen
    assert engine.finalize(99.0) is frozen
    assert engine.sample_count == 2


def test_memory_warnings_after_finalize_never_reset():
    engine = SmileSessionEngine()
    feed(engine, noisy(600))
    frozen = engine.finalize(42.0)
    actions = {engine.memory_warning() for _ in range(5)}
    assert actions == {PressureAction.NONE}
    assert engine.summary is frozen


def test_clear_and_trim_after_finalize_leave_summary_frozen():
    engine = SmileSessionEngine()
    feed(engine, noisy(2000))
    frozen = engine.finalize(140.0)

    engine.aggressive_trim()
    engine.clear()
    assert engine.is_finalized
    assert engine.finalize(5.0) is frozen
    assert frozen.duration_seconds == 140.0
    feed(engine, [(200.0, 0.9)])
    assert engine.sample_count == 0


@pytest.mark.parametrize("duration", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_duration_frozen_as_zero(duration):
    engine = SmileSessionEngine()
    feed(engine, [(0, 0.9), (1, 0.9)])
    summary = engine.finalize(duration)
    assert summary.duration_seconds == 0.0
    assert summary.smile_ratio_percent == 0.0
    assert summary.duration_label() == "0s"


@pytest.mark.parametrize("offset", [float("nan"), float("inf"), "nan"])
def test_non_finite_time_offset_rejected(offset):
    with pytest.raises(ValidationError):
        SmileSample(time_offset=offset, probability=0.5)
    with pytest.raises(ValidationError):
        DetectorReading(time_offset=offset, probability=0.5)


def test_provisional_ratio_uses_last_reading_time():
    engine = SmileSessionEngine()
    assert engine.provisional_ratio_percent() == 0.0
    feed(engine, [(0, 0.1), (2, 0.9), (4, 0.1)])
    assert engine.provisional_ratio_percent() == pytest.approx(50.0)


def test_duration_label():
    engine = SmileSessionEngine()
    assert engine.finalize(45.9).duration_label() == "45s"
    assert SmileSessionEngine().finalize(125.0).duration_label() == "2m 05s"
