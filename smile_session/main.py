"""
smile_session/main.py — FastAPI application entry point.

Run it:
    uvicorn smile_session.main:app --host 0.0.0.0 --port 8000
or
    python -m smile_session.main

The camera client (or demo.py) posts detector readings here during a
practice session and reads the summary back when the session stops.

What this file does:
  - Configures logging so you can watch sessions live in the terminal
  - Builds the FastAPI app (create_app) with its registry + usage tracker
  - Prints a startup banner with the endpoints
  - Logs timing for ingest calls
  - Turns unhandled exceptions into clean JSON errors
"""

import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import DAILY_LIMIT_SECONDS, SERVER_HOST, SERVER_PORT, USER_ENTITLED
from .routes import SessionRegistry, router
from .usage import DailyUsageTracker


# ─────────────────────────────────────────────
# LOGGING
# Format: timestamp | level | logger name | message
# ─────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s",
    datefmt="%H:%M:%S",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)  # we log our own requests

logger = logging.getLogger("smile-session.server")


# ─────────────────────────────────────────────
# STARTUP / SHUTDOWN LIFECYCLE
# ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    usage: DailyUsageTracker = app.state.usage
    base = f"http://{SERVER_HOST}:{SERVER_PORT}"

    print()
    print("━" * 52)
    print("  ◈  SMILE SESSION  SERVER")
    print("━" * 52)
    if usage.entitled:
        print("  ✓  Unlimited practice (entitled)")
    else:
        print(f"  ✓  Daily allowance: {usage.limit_seconds:.0f}s")
    print(f"  ✓  Listening on:  {base}")
    print()
    print("  Endpoints:")
    print(f"     POST   {base}/session/{{id}}/start")
    print(f"     POST   {base}/session/{{id}}/samples")
    print(f"     POST   {base}/session/{{id}}/pressure")
    print(f"     POST   {base}/session/{{id}}/stop")
    print(f"     GET    {base}/session/{{id}}/summary")
    print(f"     GET    {base}/session/{{id}}/live")
    print(f"     DELETE {base}/session/{{id}}")
    print(f"     GET    {base}/usage")
    print(f"     GET    {base}/health")
    print("━" * 52)
    print()

    yield

    print(f"\n  Server shutting down ({len(app.state.registry)} open sessions discarded).")


# ─────────────────────────────────────────────
# FASTAPI APP
# ─────────────────────────────────────────────

def create_app(usage: Optional[DailyUsageTracker] = None) -> FastAPI:
    app = FastAPI(
        title="Smile Session Server",
        description="Time-weighted smile analytics for interview practice sessions.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.registry = SessionRegistry()
    app.state.usage = usage or DailyUsageTracker(
        limit_seconds=DAILY_LIMIT_SECONDS,
        entitled=USER_ENTITLED,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)

    # ── request timing: ingest calls only, /health polling is noise ────
    @app.middleware("http")
    async def log_requests(request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        if request.url.path.endswith("/samples"):
            status = response.status_code
            symbol = "✓" if status < 400 else "✗"
            logger.info(f"{symbol} {request.method} {request.url.path} → {status}  ({duration_ms:.0f}ms)")

        return response

    # ── global error handler ────────────────────────────────────────────
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        logger.error(f"Unhandled exception on {request.url.path}: {type(exc).__name__}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"detail": f"Internal server error: {type(exc).__name__}"},
        )

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "smile_session.main:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        log_level="warning",
    )
