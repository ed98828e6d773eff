from contextlib import asynccontextmanager
import asyncio
from typing import Optional

from fastapi import FastAPI

from tubestats.api.routes import (
    channels_router,
    health_router,
    refresh_router,
    runs_router,
    statistics_router,
    videos_router,
)
from tubestats.core.cache import init_cache
from tubestats.core.config import settings
from tubestats.core.db import SessionLocal, engine
from tubestats.core.logging import get_logger
from tubestats.models import Base
from tubestats.services.ingestion_service import IngestionService


log = get_logger("tubestats")

# Background task handle
_refresh_task: Optional[asyncio.Task] = None


def create_tables() -> None:
    """Create any missing tables."""
    log.info("Creating database tables if missing")
    Base.metadata.create_all(bind=engine)


async def run_refresh_all() -> None:
    """Refresh every tracked channel once."""
    log.info("Starting scheduled refresh of all channels...")
    db = SessionLocal()
    try:
        result = await IngestionService(db).refresh_all_channels()
        for outcome in result.outcomes:
            if not outcome.ok:
                log.error(f"Refresh {outcome.channel_id}: {outcome.status} - {outcome.error or 'no error message'}")

        log.info(
            f"Scheduled refresh completed: {result.succeeded} succeeded, {result.failed} failed, "
            f"quota={result.quota['total']}"
        )
    except Exception as exc:
        log.exception(f"Scheduled refresh failed: {exc}")
    finally:
        db.close()


async def scheduled_refresh_task() -> None:
    """Background task that refreshes all channels at the configured interval."""
    interval = settings.REFRESH_INTERVAL_SECONDS
    log.info(f"Scheduled refresh task started (interval: {interval}s)")

    while True:
        try:
            await asyncio.sleep(interval)
            await run_refresh_all()
        except asyncio.CancelledError:
            log.info("Scheduled refresh task cancelled")
            break
        except Exception as exc:
            log.exception(f"Scheduled refresh task error: {exc}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _refresh_task

    log.info(f"Starting application in {settings.ENV.upper()} mode")
    if settings.is_production:
        log.info("Production mode: Debug disabled, docs disabled, stricter logging")
    else:
        log.info("Development mode: Debug enabled, docs available")

    try:
        create_tables()
    except Exception:
        log.exception("Failed to create tables on startup")
        raise

    init_cache()

    if settings.REFRESH_ENABLED:
        log.info("Starting scheduled refresh background task...")
        _refresh_task = asyncio.create_task(scheduled_refresh_task())
    else:
        log.info("Scheduled refresh is disabled (REFRESH_ENABLED=false)")

    yield

    log.info("Shutting down services...")
    if _refresh_task:
        log.info("Cancelling scheduled refresh task...")
        _refresh_task.cancel()
        try:
            await _refresh_task
        except asyncio.CancelledError:
            pass
        _refresh_task = None

    log.info("Application shutdown complete")


app = FastAPI(
    title="Tubestats",
    description="YouTube channel and video statistics tracker",
    version="1.0.0",
    lifespan=lifespan,
    # Disable docs in production
    docs_url="/docs" if settings.docs_enabled else None,
    redoc_url="/redoc" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.docs_enabled else None,
    debug=settings.debug_enabled,
)


app.include_router(channels_router)
app.include_router(videos_router)
app.include_router(statistics_router)
app.include_router(refresh_router)
app.include_router(runs_router)
app.include_router(health_router)
