"""
models.py — All data shapes for the smile session engine.

Single source of truth for what flows between the detector, the engine,
and whoever reads the results (HTTP clients, the demo, tests).

Flow:
  Detector sends   → DetectorReading  (time offset + probability + face flag)
  Engine keeps     → SmileSample      (clamped, immutable)
  Session end      → SessionSummary   (ratio + chart series + frozen duration)
"""

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ─────────────────────────────────────────────
# SMILE SAMPLE — one detector reading, as the engine stores it
# ─────────────────────────────────────────────

class SmileSample(BaseModel):
    model_config = ConfigDict(frozen=True)

    time_offset: float = Field(
        ...,
        allow_inf_nan=False,
        description="Seconds since session start. Taken as-is, no reordering."
    )
    probability: float = Field(
        ...,
        description="Smiling confidence in [0, 1]. 0 when no face was found."
    )

    @field_validator("probability", mode="before")
    @classmethod
    def clamp_probability(cls, v) -> float:
        # A glitchy detector must not take down a live session
        v = float(v)
        if math.isnan(v):
            return 0.0
        return max(0.0, min(1.0, v))


# ─────────────────────────────────────────────
# DETECTOR READING — what the camera side posts per processed frame
# ─────────────────────────────────────────────

class DetectorReading(BaseModel):
    time_offset: float = Field(..., allow_inf_nan=False, description="Seconds since session start.")
    probability: float = Field(default=0.0, description="Raw smiling probability from the classifier.")
    face_detected: bool = Field(default=True, description="False when the classifier found no face.")

    def to_sample(self) -> SmileSample:
        """No face means no smile, so probability is forced to 0."""
        probability = self.probability if self.face_detected else 0.0
        return SmileSample(time_offset=self.time_offset, probability=probability)


# ─────────────────────────────────────────────
# MEMORY PRESSURE — what the engine did about a warning
# ─────────────────────────────────────────────

class PressureAction(str, Enum):
    NONE  = "NONE"    # first warning, host clears its own caches
    TRIM  = "TRIM"    # second warning, keep only recent history
    RESET = "RESET"   # third+ warning, session restarted from empty


# ─────────────────────────────────────────────
# SESSION SUMMARY — produced once when the session stops
# ─────────────────────────────────────────────

class SessionSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    smile_ratio_percent: float = Field(..., ge=0.0, le=100.0)
    display_series: tuple[SmileSample, ...] = Field(
        default=(),
        description="Chart-ready points, sorted by time_offset."
    )
    duration_seconds: float = Field(
        ...,
        allow_inf_nan=False,
        description="Wall-clock duration frozen at stop time. Never recomputed."
    )
    sample_count: int = Field(default=0, ge=0)
    degraded: bool = Field(
        default=False,
        description="True if history was trimmed or reset under memory pressure."
    )
    extend_trailing_gap: bool = Field(default=False)

    def duration_label(self) -> str:
        """'45s' under a minute, '2m 05s' above."""
        total = int(self.duration_seconds)
        if total < 60:
            return f"{total}s"
        return f"{total // 60}m {total % 60:02d}s"


# ─────────────────────────────────────────────
# REQUEST / RESPONSE BODIES — HTTP layer only
# ─────────────────────────────────────────────

class SampleBatch(BaseModel):
    readings: list[DetectorReading] = Field(default_factory=list)


class PressureSignal(BaseModel):
    level: int = Field(..., ge=1, description="1, 2, or 3+ consecutive memory warnings.")


class StopRequest(BaseModel):
    duration_seconds: float = Field(
        ...,
        allow_inf_nan=False,
        description="Wall-clock time between start and stop."
    )
    extend_trailing_gap: bool = Field(
        default=False,
        description="Credit the time after the last reading as smiling if that reading was."
    )


class IngestResult(BaseModel):
    processed: int
    total_samples: int
    display_points: int


class LiveStats(BaseModel):
    session_id: str
    total_samples: int
    display_points: int
    provisional_ratio_percent: float
    degraded: bool


class UsageStatus(BaseModel):
    used_seconds: float
    remaining_seconds: float | None   # None when unlimited
    limit_seconds: float
    unlimited: bool
    usage_percent: float
    message: str
