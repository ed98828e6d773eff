"""Refresh routes - ingest one channel or refresh every tracked channel."""

import time

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from tubestats.api.deps import get_cache_store, get_client_factory, get_db
from tubestats.core.cache import CacheStore
from tubestats.core.exceptions import IngestionWriteError, InvalidChannelIdentifier, UpstreamError
from tubestats.core.logging import get_logger
from tubestats.schemas.api import (
    ChannelOut,
    ChannelRefreshOut,
    ErrorResponse,
    FailedBatchOut,
    IngestionResponse,
    QuotaOut,
    RefreshAllResponse,
)
from tubestats.services.ingestion_service import ClientFactory, IngestionService

router = APIRouter(prefix="/refresh", tags=["refresh"])
log = get_logger("refresh_routes")


def _error(status_code: int, status: str, message: str, quota: dict | None = None) -> JSONResponse:
    body = ErrorResponse(status=status, message=message, quota=QuotaOut(**quota) if quota else None)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.post("/channel", response_model=IngestionResponse)
async def ingest_channel(
    url: str = Query(..., min_length=1, description="Channel URL, @handle or channel id"),
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache_store),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    """
    Ingest one channel:

    1. Resolve the identifier and fetch channel metadata
    2. List every video of its uploads playlist
    3. Fetch statistics in batches of 50
    4. Upsert channel and videos, append snapshots
    5. Invalidate the cached rollups
    """
    start = time.perf_counter()
    service = IngestionService(db, cache=cache, client_factory=client_factory)

    try:
        result = await service.ingest_channel(url)
    except InvalidChannelIdentifier as exc:
        return _error(400, "400 Bad Request", str(exc))
    except UpstreamError as exc:
        log.error(f"Upstream failure ingesting {url!r}: {exc}")
        return _error(502, "502 Bad Gateway", str(exc))
    except IngestionWriteError as exc:
        return _error(500, "500 Internal Server Error", str(exc), exc.quota)
    except Exception as exc:
        log.error(f"Ingestion of {url!r} failed: {exc}")
        return _error(500, "500 Internal Server Error", str(exc))

    elapsed_ms = int((time.perf_counter() - start) * 1000)
    quota = QuotaOut(**result.quota)

    if result.status == "not_found":
        return JSONResponse(
            status_code=404,
            content=IngestionResponse(
                status="404 Not Found",
                outcome="not_found",
                elapsed_ms=elapsed_ms,
                quota=quota,
                run_id=str(result.run_id),
            ).model_dump(mode="json"),
        )

    return IngestionResponse(
        status="200 OK",
        outcome=result.status,
        elapsed_ms=elapsed_ms,
        quota=quota,
        channel=ChannelOut.model_validate(result.channel),
        items_processed=result.items_processed,
        snapshots_appended=result.snapshots_appended,
        failed_batches=[FailedBatchOut(item_ids=b.item_ids, error=b.error) for b in result.failed_batches],
        run_id=str(result.run_id),
    )


@router.post("/all", response_model=RefreshAllResponse)
async def refresh_all_channels(
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache_store),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    """
    Refresh metadata of every tracked channel, five at a time.

    Always returns one outcome per channel; a failing channel does not fail the request.
    """
    start = time.perf_counter()
    service = IngestionService(db, cache=cache, client_factory=client_factory)

    try:
        result = await service.refresh_all_channels()
    except IngestionWriteError as exc:
        return _error(500, "500 Internal Server Error", str(exc), exc.quota)
    except Exception as exc:
        log.error(f"Refresh of all channels failed: {exc}")
        return _error(500, "500 Internal Server Error", str(exc))

    return RefreshAllResponse(
        status="200 OK",
        elapsed_ms=int((time.perf_counter() - start) * 1000),
        quota=QuotaOut(**result.quota),
        succeeded=result.succeeded,
        failed=result.failed,
        outcomes=[ChannelRefreshOut(channel_id=o.channel_id, status=o.status, error=o.error) for o in result.outcomes],
        run_id=str(result.run_id),
    )
