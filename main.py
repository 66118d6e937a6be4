"""FastAPI demo application guarded by the per-client request limiter."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from reqlimit.config import get_settings
from reqlimit.logging_config import configure_logging
from reqlimit.middleware import RequestLimiter, log_rejection
from reqlimit.window import WindowTracker

configure_logging()
LOGGER = logging.getLogger(__name__)

settings = get_settings()
limiter_config = settings.limiter_config()
tracker = WindowTracker(limiter_config)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    if settings.sweep_interval_seconds > 0:
        tracker.start_sweeper(settings.sweep_interval_seconds)
    try:
        yield
    finally:
        tracker.stop_sweeper()


app = FastAPI(title="Request Limiter Demo", lifespan=lifespan)
app.add_middleware(
    RequestLimiter,
    config=limiter_config,
    tracker=tracker,
    on_reject=log_rejection,
)


@app.get("/", response_class=PlainTextResponse)
async def index() -> str:
    """Answer every request that made it past the limiter."""

    return "success"
