"""Refresh entrypoint - Standalone script for running ingestion jobs.

Usage:
    python -m tubestats.refresh_entrypoint                      # Refresh every tracked channel
    python -m tubestats.refresh_entrypoint @handle              # Ingest one channel
    python -m tubestats.refresh_entrypoint https://www.youtube.com/channel/UC...
"""

import asyncio
import sys

from tubestats.core.db import SessionLocal, engine
from tubestats.core.exceptions import TubestatsError
from tubestats.core.logging import get_logger
from tubestats.models import Base
from tubestats.services.ingestion_service import IngestionResult, IngestionService, RefreshAllResult

logger = get_logger("refresh_entrypoint")


async def run_ingest_channel(identifier: str) -> IngestionResult:
    """Ingest a single channel."""
    logger.info(f"Starting ingestion job for: {identifier}")
    with SessionLocal() as db:
        result = await IngestionService(db).ingest_channel(identifier)
        logger.info(
            f"Ingestion job completed for {identifier}: status={result.status} "
            f"videos={result.items_processed} snapshots={result.snapshots_appended} quota={result.quota['total']}"
        )
        return result


async def run_refresh_all() -> RefreshAllResult:
    """Refresh every tracked channel."""
    logger.info("Refreshing all channels")
    with SessionLocal() as db:
        result = await IngestionService(db).refresh_all_channels()
        logger.info(f"Refresh completed: {result.succeeded} succeeded, {result.failed} failed")
        return result


def main(argv=None) -> int:
    """Main entry point; returns the process exit code."""
    args = sys.argv[1:] if argv is None else argv
    Base.metadata.create_all(bind=engine)

    try:
        if args:
            result = asyncio.run(run_ingest_channel(args[0]))
            failed = result.status != "success"
        else:
            outcome = asyncio.run(run_refresh_all())
            failed = outcome.failed > 0
    except TubestatsError as exc:
        logger.error(f"Refresh failed: {exc}")
        return 1

    # Exit with error code if anything was not fully refreshed
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
