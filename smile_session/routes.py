"""
routes.py — FastAPI route definitions for the smile session server.

The camera side drives a session like this:
  POST   /session/{id}/start      fresh engine (refused once the daily allowance is gone)
  POST   /session/{id}/samples    batches of detector readings, ~15 per second
  POST   /session/{id}/pressure   host memory warnings
  POST   /session/{id}/stop       frozen duration in, SessionSummary out
  GET    /session/{id}/summary    the same summary, read-only, as often as you like

Engines live in a SessionRegistry attached to app.state. One engine per
session id, replaced wholesale on every start.
"""

import logging
import threading
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from .config import MAX_SESSIONS
from .engine import SmileSessionEngine
from .models import (
    IngestResult,
    LiveStats,
    PressureSignal,
    SampleBatch,
    SessionSummary,
    StopRequest,
    UsageStatus,
)
from .usage import DailyUsageTracker

logger = logging.getLogger(__name__)
router = APIRouter()


# ─────────────────────────────────────────────
# SESSION REGISTRY
# In-memory, keyed by session id. Handed to routes through
# app.state so tests can build an app with their own registry.
# ─────────────────────────────────────────────

class SessionRegistry:
    """
    Holds at most `max_sessions` engines. Starting one more evicts the
    oldest stopped session, or the oldest running one if none has stopped.
    """

    def __init__(self, max_sessions: int = MAX_SESSIONS):
        if max_sessions < 1:
            raise ValueError(f"Registry must hold at least one session, got {max_sessions}")
        self.max_sessions = max_sessions
        self._engines: dict[str, SmileSessionEngine] = {}
        self._lock = threading.Lock()

    def _evict_one(self) -> str:
        # dict order is start order, oldest first
        victim = next(
            (sid for sid, engine in self._engines.items() if engine.is_finalized),
            next(iter(self._engines)),
        )
        del self._engines[victim]
        return victim

    def start(self, session_id: str) -> SmileSessionEngine:
        engine = SmileSessionEngine()
        evicted = []
        with self._lock:
            replaced = self._engines.pop(session_id, None) is not None
            while len(self._engines) >= self.max_sessions:
                evicted.append(self._evict_one())
            self._engines[session_id] = engine
        for victim in evicted:
            logger.info(f"Session evicted to make room: {victim}")
        if replaced:
            logger.info(f"Session restarted: {session_id}")
        else:
            logger.info(f"New session created: {session_id}")
        return engine

    def get(self, session_id: str) -> Optional[SmileSessionEngine]:
        return self._engines.get(session_id)

    def discard(self, session_id: str) -> bool:
        with self._lock:
            return self._engines.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._engines)


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_usage(request: Request) -> DailyUsageTracker:
    return request.app.state.usage


def _require_engine(registry: SessionRegistry, session_id: str) -> SmileSessionEngine:
    engine = registry.get(session_id)
    if engine is None:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found.")
    return engine


# ─────────────────────────────────────────────
# SESSION LIFECYCLE
# ─────────────────────────────────────────────

@router.post("/session/{session_id}/start", summary="Start a practice session")
async def start_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
    usage: DailyUsageTracker = Depends(get_usage),
):
    if not usage.can_use():
        raise HTTPException(
            status_code=403,
            detail="Daily practice limit reached. Unlock unlimited practice to continue.",
        )
    registry.start(session_id)
    return {"session_id": session_id, "message": "Session started."}


@router.post(
    "/session/{session_id}/samples",
    response_model=IngestResult,
    summary="Record a batch of detector readings",
)
async def ingest_samples(
    session_id: str,
    batch: SampleBatch,
    registry: SessionRegistry = Depends(get_registry),
):
    engine = _require_engine(registry, session_id)
    if engine.is_finalized:
        raise HTTPException(status_code=409, detail=f"Session '{session_id}' is already stopped.")

    processed = engine.record_many(batch.readings)
    logger.debug(f"[{session_id}] +{processed} readings → {engine.sample_count} total")

    return IngestResult(
        processed=processed,
        total_samples=engine.sample_count,
        display_points=len(engine.display_series),
    )


@router.post("/session/{session_id}/pressure", summary="Report host memory pressure")
async def memory_pressure(
    session_id: str,
    signal: PressureSignal,
    registry: SessionRegistry = Depends(get_registry),
):
    engine = _require_engine(registry, session_id)
    action = engine.handle_memory_pressure(signal.level)
    return {
        "session_id":    session_id,
        "action":        action.value,
        "total_samples": engine.sample_count,
        "degraded":      engine.degraded,
    }


@router.post(
    "/session/{session_id}/stop",
    response_model=SessionSummary,
    summary="Stop the session and freeze its summary",
)
async def stop_session(
    session_id: str,
    body: StopRequest,
    registry: SessionRegistry = Depends(get_registry),
    usage: DailyUsageTracker = Depends(get_usage),
):
    engine = _require_engine(registry, session_id)

    # Second stop is a no-op: same summary back, usage not counted twice
    if engine.is_finalized:
        return engine.summary

    summary = engine.finalize(body.duration_seconds, body.extend_trailing_gap)
    usage.track_usage(summary.duration_seconds)

    if summary.degraded:
        logger.warning(f"[{session_id}] summary built from trimmed data — ratio is approximate")
    return summary


@router.get(
    "/session/{session_id}/summary",
    response_model=SessionSummary,
    summary="Get the frozen session summary",
)
async def session_summary(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    engine = _require_engine(registry, session_id)
    if not engine.is_finalized:
        raise HTTPException(status_code=409, detail=f"Session '{session_id}' is still running.")
    return engine.summary


@router.get(
    "/session/{session_id}/live",
    response_model=LiveStats,
    summary="Running stats for an active session",
)
async def session_live(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    engine = _require_engine(registry, session_id)
    return LiveStats(
        session_id=session_id,
        total_samples=engine.sample_count,
        display_points=len(engine.display_series),
        provisional_ratio_percent=round(engine.provisional_ratio_percent(), 2),
        degraded=engine.degraded,
    )


@router.delete("/session/{session_id}", summary="Discard a session")
async def discard_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    if registry.discard(session_id):
        logger.info(f"Session discarded: {session_id}")
        return {"message": f"Session '{session_id}' cleared."}
    return {"message": f"Session '{session_id}' did not exist — nothing to clear."}


# ─────────────────────────────────────────────
# USAGE + HEALTH
# ─────────────────────────────────────────────

@router.get("/usage", response_model=UsageStatus, summary="Daily allowance status")
async def usage_status(usage: DailyUsageTracker = Depends(get_usage)):
    return UsageStatus(
        used_seconds=round(usage.used_seconds, 1),
        remaining_seconds=None if usage.entitled else round(usage.remaining_seconds(), 1),
        limit_seconds=usage.limit_seconds,
        unlimited=usage.entitled,
        usage_percent=round(usage.usage_percentage(), 1),
        message=usage.progress_message(),
    )


@router.get("/health", summary="Health check")
async def health_check(registry: SessionRegistry = Depends(get_registry)):
    return {"status": "ok", "sessions": len(registry)}
