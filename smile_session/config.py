"""
config.py — Tunable constants for the smile session engine + server.

Two kinds of values live here:
  1. Algorithm constants: thresholds and caps the analytics depend on.
     These are NOT read from the environment: changing them changes what
     a "smile ratio" means, so they only move in code (tests pass their own
     values through constructor arguments instead).
  2. Operational settings: host, port, daily allowance. These come from
     the environment (or a .env file) so a deployment can change them
     without touching code.
"""

import os

from dotenv import load_dotenv

load_dotenv()


# ─────────────────────────────────────────────
# SMILE RATIO
# A reading counts as "smiling" above this probability.
# Deliberately separate from the live detector's sensitivity knob:
# that one drives on-screen feedback, this one drives the reported ratio.
# ─────────────────────────────────────────────

SMILE_THRESHOLD        = 0.3
FIRST_SAMPLE_EPSILON   = 0.1     # seconds credited to a smiling first reading


# ─────────────────────────────────────────────
# DISPLAY SAMPLER
# Admission tiers widen as the session grows so the chart series
# stays small on long sessions.
#   (sample count upper bound, min Δtime, min Δprobability)
# ─────────────────────────────────────────────

ADMISSION_TIERS = (
    (100,  0.5, 0.05),
    (500,  1.0, 0.08),
    (1000, 2.0, 0.12),
)
ADMISSION_FLOOR        = (3.0, 0.15)   # ≥ 1000 samples

COMPACTION_TRIGGER     = 1000   # compact once the series grows past this
DISPLAY_CAP            = 800    # max points after compaction

PEAK_FLOOR             = 0.5    # local maxima above this are kept
VALLEY_CEILING         = 0.3    # local minima below this are kept


# ─────────────────────────────────────────────
# MEMORY PRESSURE
# Second consecutive signal trims, third resets.
# ─────────────────────────────────────────────

TRIM_KEEP_RAW          = 500
TRIM_KEEP_DISPLAY      = 300


# ─────────────────────────────────────────────
# DAILY ALLOWANCE
# Free users get a few minutes of practice per day.
# ─────────────────────────────────────────────

DAILY_LIMIT_SECONDS    = float(os.getenv("DAILY_LIMIT_SECONDS", 180))
USER_ENTITLED          = os.getenv("USER_ENTITLED", "false").lower() in ("1", "true", "yes")


# ─────────────────────────────────────────────
# SERVER
# ─────────────────────────────────────────────

SERVER_HOST            = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT            = int(os.getenv("SERVER_PORT", 8000))
MAX_SESSIONS           = int(os.getenv("MAX_SESSIONS", 64))   # stopped sessions are evicted first
