"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from privacyguard.api.router import api_router
from privacyguard.core.config import get_settings
from privacyguard.db import close as db_close, connect as db_connect
from privacyguard.pipeline.factory import build_coordinator
from privacyguard.pipeline.scheduler import AssessmentScheduler
from privacyguard.store import RedisAssessmentStore

logging.basicConfig(level=get_settings().log_level.upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown events."""
    settings = get_settings()
    store = RedisAssessmentStore(db_connect(settings))
    coordinator = build_coordinator(settings, store)
    app.state.store = store
    app.state.coordinator = coordinator

    scheduler: AssessmentScheduler | None = None
    if settings.scheduler_enabled:
        scheduler = AssessmentScheduler(
            coordinator,
            interval_seconds=settings.scheduler_interval_minutes * 60,
            concurrency=settings.batch_concurrency,
        )
        scheduler.start()
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()
        await db_close()


def create_application() -> FastAPI:
    """Create and configure the FastAPI app."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        description="Privacy policy discovery and risk assessment service.",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_application()
