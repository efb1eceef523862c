"""Smile session analytics: time-weighted smile ratio + chart series for practice sessions."""

from .engine import SmileSessionEngine, summarize
from .models import DetectorReading, PressureAction, SessionSummary, SmileSample
from .ratio import compute_smile_ratio_percent
from .sampler import DisplaySampler
from .usage import DailyUsageTracker

__all__ = [
    "DailyUsageTracker",
    "DetectorReading",
    "DisplaySampler",
    "PressureAction",
    "SessionSummary",
    "SmileSample",
    "SmileSessionEngine",
    "compute_smile_ratio_percent",
    "summarize",
]
