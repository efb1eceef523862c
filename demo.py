"""
demo.py — Synthetic practice session against the smile session server.

Stands in for the phone's camera + face classifier: generates a ~15 Hz
stream of smile probabilities with realistic jitter, dropped frames and
moments where the face leaves the frame, and posts it to the server in
batches. When the session ends it prints the summary and a small chart.

Usage:
    1. Start the server:   python -m smile_session.main
    2. Run the demo:       python demo.py

Set SERVER_URL in .env to point at a server on another machine.
"""

import logging
import os
import sys
import time
import uuid

import httpx
import numpy as np
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(message)s",
    datefmt="%H:%M:%S",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logger = logging.getLogger("smile-session.demo")


# ─────────────────────────────────────────────
# CONFIG
# ─────────────────────────────────────────────

SERVER_URL      = os.getenv("SERVER_URL", "http://localhost:8000")
SESSION_ID      = f"demo_{uuid.uuid4().hex[:8]}"
SESSION_SECONDS = 60.0    # simulated session length
FRAME_RATE_HZ   = 15.0    # detector callback rate before jitter
BATCH_SIZE      = 30      # readings per POST (~2s of frames)
FACE_LOST_RATE  = 0.03    # chance per frame that the face drops out
REQUEST_TIMEOUT = 5.0
CHART_WIDTH     = 60


# ─────────────────────────────────────────────
# SYNTHETIC DETECTOR
# A smile "intent" that switches on and off every few seconds,
# smoothed and noised to look like a classifier's output.
# ─────────────────────────────────────────────

def generate_readings(seconds: float, seed: int = 7) -> list[dict]:
    rng = np.random.default_rng(seed)

    # Uneven frame spacing: nominal period ± jitter, plus occasional stalls
    period = 1.0 / FRAME_RATE_HZ
    gaps = rng.normal(period, period * 0.25, size=int(seconds * FRAME_RATE_HZ * 1.2))
    stalls = rng.random(gaps.size) < 0.01
    gaps[stalls] += rng.uniform(0.3, 1.2, size=stalls.sum())
    times = np.cumsum(np.clip(gaps, 0.01, None))
    times = times[times <= seconds]

    # Smile intent flips every 2-6 seconds
    intent = np.zeros(times.size)
    t_next, smiling = 0.0, False
    for i, t in enumerate(times):
        if t >= t_next:
            smiling = not smiling
            t_next = t + rng.uniform(2.0, 6.0)
        intent[i] = 0.85 if smiling else 0.08

    # Exponential smoothing + noise = classifier-ish probability
    probs = np.empty(times.size)
    level = intent[0] if times.size else 0.0
    for i in range(times.size):
        level += 0.25 * (intent[i] - level)
        probs[i] = level
    probs = np.clip(probs + rng.normal(0, 0.05, size=probs.size), 0.0, 1.0)

    face = rng.random(times.size) >= FACE_LOST_RATE

    return [
        {
            "time_offset":   round(float(t), 3),
            "probability":   round(float(p), 4),
            "face_detected": bool(f),
        }
        for t, p, f in zip(times, probs, face)
    ]


# ─────────────────────────────────────────────
# SERVER CALLS
# ─────────────────────────────────────────────

def check_server(client: httpx.Client) -> bool:
    try:
        resp = client.get(f"{SERVER_URL}/health", timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
        logger.info(f"Server healthy at {SERVER_URL} ✓")
        return True
    except httpx.ConnectError:
        logger.error(f"Cannot connect to server at {SERVER_URL}")
        logger.error("→ Is the server running?  python -m smile_session.main")
        logger.error(f"→ Is SERVER_URL correct in .env?  Current: {SERVER_URL}")
        return False
    except httpx.HTTPError as e:
        logger.error(f"Health check failed: {type(e).__name__}: {e}")
        return False


def run_session(client: httpx.Client, readings: list[dict]) -> dict:
    base = f"{SERVER_URL}/session/{SESSION_ID}"

    resp = client.post(f"{base}/start", timeout=REQUEST_TIMEOUT)
    if resp.status_code == 403:
        raise RuntimeError(resp.json().get("detail", "Daily limit reached"))
    resp.raise_for_status()
    logger.info(f"Session {SESSION_ID} started — streaming {len(readings)} readings")

    for start in range(0, len(readings), BATCH_SIZE):
        batch = readings[start:start + BATCH_SIZE]
        resp = client.post(f"{base}/samples", json={"readings": batch}, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
        result = resp.json()
        logger.debug(f"  +{result['processed']} → {result['total_samples']} total, "
                     f"{result['display_points']} charted")

    live = client.get(f"{base}/live", timeout=REQUEST_TIMEOUT).json()
    logger.info(f"Provisional ratio: {live['provisional_ratio_percent']:.1f}%")

    resp = client.post(
        f"{base}/stop",
        json={"duration_seconds": SESSION_SECONDS, "extend_trailing_gap": False},
        timeout=REQUEST_TIMEOUT,
    )
    resp.raise_for_status()
    return resp.json()


# ─────────────────────────────────────────────
# OUTPUT
# ─────────────────────────────────────────────

def sparkline(series: list[dict], width: int = CHART_WIDTH) -> str:
    """Bucket the chart series into `width` columns and draw the mean of each."""
    if not series:
        return ""
    blocks = " ▁▂▃▄▅▆▇█"
    times = np.array([p["time_offset"] for p in series])
    probs = np.array([p["probability"] for p in series])
    edges = np.linspace(times.min(), times.max() + 1e-9, width + 1)
    cols = []
    for lo, hi in zip(edges[:-1], edges[1:]):
        mask = (times >= lo) & (times < hi)
        value = probs[mask].mean() if mask.any() else 0.0
        cols.append(blocks[int(round(value * (len(blocks) - 1)))])
    return "".join(cols)


def print_summary(summary: dict) -> None:
    duration = summary["duration_seconds"]
    print(f"\n{'━' * 66}")
    print(f"  SESSION SUMMARY — {SESSION_ID}")
    print(f"{'━' * 66}")
    print(f"  Duration:        {int(duration // 60)}m {int(duration % 60)}s")
    print(f"  Smile ratio:     {summary['smile_ratio_percent']:.1f}%  (>0.3, time-weighted)")
    print(f"  Readings:        {summary['sample_count']}")
    print(f"  Chart points:    {len(summary['display_series'])}")
    if summary["degraded"]:
        print("  ⚠  Memory pressure trimmed this session — ratio is approximate")
    print(f"  Trend:  {sparkline(summary['display_series'])}")
    print(f"{'━' * 66}\n")


def main() -> int:
    readings = generate_readings(SESSION_SECONDS)
    with httpx.Client() as client:
        if not check_server(client):
            return 1
        try:
            summary = run_session(client, readings)
        except (httpx.HTTPError, RuntimeError) as e:
            logger.error(f"Session failed: {type(e).__name__}: {e}")
            return 1
    print_summary(summary)
    return 0


if __name__ == "__main__":
    t0 = time.perf_counter()
    code = main()
    logger.info(f"Done in {time.perf_counter() - t0:.1f}s")
    sys.exit(code)
