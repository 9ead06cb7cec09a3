"""
FastAPI application for the gear shop notifier.

Provides REST endpoints for:
- Triggering scrape runs
- Receiving product change events

Run with:
    cd backend
    uvicorn api.main:app --port 8000
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from pydantic import BaseModel

from gearshop import __version__
from gearshop.config import configure_logging

from .routes import events, scrapes
from .services.runner import runner


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Loads settings on startup. Settings errors are logged, and the first
    request retries loading them.
    """
    try:
        runner.initialize()
        configure_logging(runner.settings.log_level)
        logger.info("Settings loaded (local mode: %s)", runner.settings.local)
    except ValueError as e:
        configure_logging()
        logger.warning("Could not load settings: %s", e)

    yield


app = FastAPI(
    title="Gear Shop Notifier API",
    description="Trigger gear shop scrapes and send new-product alerts",
    version=__version__,
    lifespan=lifespan,
)

# Include routers
app.include_router(scrapes.router)
app.include_router(events.router)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: datetime
    database: str
    local: bool


@app.get("/api/health", response_model=HealthResponse, tags=["health"])
def health_check():
    """Health check with the configured database backend."""
    settings = runner.settings
    if settings is None:
        database = "unconfigured"
    elif settings.database_url and not settings.local:
        database = "postgresql"
    else:
        database = f"sqlite:{settings.database_file}"

    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc),
        database=database,
        local=bool(settings and settings.local),
    )


@app.get("/", tags=["root"])
def root():
    """API welcome message and documentation link."""
    return {
        "message": "Gear Shop Notifier API",
        "version": __version__,
        "docs": "/docs",
        "health": "/api/health",
    }
