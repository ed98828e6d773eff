"""Top-level ingestion operations: ingest one channel, refresh every channel."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Literal, Optional, TypeVar

from sqlalchemy.orm import Session

from tubestats.core.cache import CacheStore
from tubestats.core.config import settings
from tubestats.core.exceptions import IngestionWriteError, TubestatsError, UpstreamError
from tubestats.core.logging import get_logger
from tubestats.core.quota import QuotaTracker
from tubestats.ingestion.scheduler import ChannelRefreshOutcome, RefreshScheduler, RefreshStatus
from tubestats.ingestion.youtube_client import BatchOutcome, YouTubeClient
from tubestats.models.channel import Channel
from tubestats.models.runs import RefreshRun
from tubestats.services.rollup_service import RollupService
from tubestats.services.snapshot_store import SnapshotStore

log = get_logger("ingestion_service")

T = TypeVar("T")

ClientFactory = Callable[[QuotaTracker], YouTubeClient]
IngestionStatus = Literal["success", "partial", "not_found"]


@dataclass
class IngestionResult:
    status: IngestionStatus
    quota: Dict[str, Any]
    channel: Optional[Channel] = None
    items_processed: int = 0
    snapshots_appended: int = 0
    failed_batches: List[BatchOutcome] = field(default_factory=list)
    run_id: Optional[uuid.UUID] = None


@dataclass
class RefreshAllResult:
    outcomes: List[ChannelRefreshOutcome]
    quota: Dict[str, Any]
    run_id: Optional[uuid.UUID] = None

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)


class IngestionService:
    """Pulls channel metadata, uploads and statistics from YouTube into the store.

    Every public operation starts its own ``QuotaTracker`` and records a
    ``RefreshRun``. Writes are independent transactions: a failure in a later
    stage leaves earlier stages committed and surfaces as ``IngestionWriteError``.
    """

    def __init__(
        self,
        db: Session,
        cache: Optional[CacheStore] = None,
        client_factory: Optional[ClientFactory] = None,
        concurrency: Optional[int] = None,
    ):
        self.db = db
        self.store = SnapshotStore(db)
        self.rollups = RollupService(db, cache=cache)
        self.client_factory: ClientFactory = client_factory or YouTubeClient
        self.concurrency = concurrency or settings.REFRESH_CONCURRENCY

    # -------------------------------------------------------------------------
    # Ingest one channel
    # -------------------------------------------------------------------------
    async def ingest_channel(self, identifier: str) -> IngestionResult:
        quota = QuotaTracker(ceiling=settings.YOUTUBE_DAILY_QUOTA)
        run = self._start_run("ingest_channel", identifier)
        log.info(f"Starting ingestion for {identifier!r}")

        try:
            async with self.client_factory(quota) as client:
                descriptor = await client.resolve_channel(identifier)
                if descriptor is None:
                    self._finish_run(run, "not_found", quota)
                    return IngestionResult(status="not_found", quota=quota.summary(), run_id=run.run_id)

                items = [item async for item in client.list_uploaded_items(descriptor.upload_handle)]
                fetched = await client.fetch_statistics(item.item_id for item in items)
        except TubestatsError as exc:
            self._fail_run(run, quota, exc)
            raise
        except Exception as exc:
            log.exception(f"Unexpected error while fetching {identifier!r}")
            self._fail_run(run, quota, exc)
            raise UpstreamError("ingest_channel", f"{type(exc).__name__}: {exc}") from exc

        channel = self._write("channel", run, quota, lambda: self.store.upsert_channel(descriptor))
        items_processed = self._write(
            "items", run, quota, lambda: self.store.upsert_items(items, descriptor.external_id)
        )
        appended = self._write("snapshots", run, quota, lambda: self.store.append_snapshots(fetched.statistics))
        self._write("cache", run, quota, self.rollups.invalidate)

        status: IngestionStatus = "partial" if fetched.failed_batches else "success"
        self._finish_run(
            run,
            status,
            quota,
            items_processed=items_processed,
            snapshots_appended=appended,
            meta={
                "channel_id": descriptor.external_id,
                "failed_batches": [b.item_ids for b in fetched.failed_batches],
            },
        )
        log.info(
            f"Ingestion finished for {descriptor.external_id} | status={status} "
            f"videos={items_processed} snapshots={appended} quota={quota.total}"
        )
        return IngestionResult(
            status=status,
            quota=quota.summary(),
            channel=channel,
            items_processed=items_processed,
            snapshots_appended=appended,
            failed_batches=fetched.failed_batches,
            run_id=run.run_id,
        )

    # -------------------------------------------------------------------------
    # Refresh every channel
    # -------------------------------------------------------------------------
    async def refresh_all_channels(self) -> RefreshAllResult:
        """Refresh metadata of every stored channel; per-channel failures never raise."""
        quota = QuotaTracker(ceiling=settings.YOUTUBE_DAILY_QUOTA)
        run = self._start_run("refresh_all", None)
        try:
            channel_ids = self.store.channel_ids()
            log.info(f"Refreshing {len(channel_ids)} channels (concurrency={self.concurrency})")

            async with self.client_factory(quota) as client:

                async def refresh_one(channel_id: str) -> RefreshStatus:
                    descriptor = await client.fetch_channel_by_id(channel_id)
                    if descriptor is None:
                        return "not_found"
                    self.store.upsert_channel(descriptor)
                    return "success"

                outcomes = await RefreshScheduler(self.concurrency).run(channel_ids, refresh_one)
        except Exception as exc:
            log.exception("Refresh of all channels aborted")
            self._fail_run(run, quota, exc)
            raise

        result = RefreshAllResult(outcomes=outcomes, quota=quota.summary(), run_id=run.run_id)

        if any(o.status == "success" for o in outcomes):
            self._write("cache", run, quota, self.rollups.invalidate)

        self._finish_run(
            run,
            "success" if result.failed == 0 else "partial",
            quota,
            items_processed=result.succeeded,
            meta={"outcomes": [{"channel_id": o.channel_id, "status": o.status, "error": o.error} for o in outcomes]},
        )
        return result

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------
    def _write(self, stage: str, run: RefreshRun, quota: QuotaTracker, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except Exception as exc:  # noqa: BLE001
            log.error(f"Ingestion write stage {stage!r} failed: {exc}")
            self._fail_run(run, quota, exc)
            raise IngestionWriteError(stage, exc, quota.summary()) from exc

    def _start_run(self, operation: str, target: Optional[str]) -> RefreshRun:
        run = RefreshRun(operation=operation, target=target, status="running")
        self.db.add(run)
        self.db.commit()
        return run

    def _finish_run(
        self,
        run: RefreshRun,
        status: str,
        quota: QuotaTracker,
        items_processed: int = 0,
        snapshots_appended: int = 0,
        meta: Optional[Dict[str, Any]] = None,
    ) -> None:
        run.status = status
        run.quota_used = quota.total
        run.items_processed = items_processed
        run.snapshots_appended = snapshots_appended
        run.meta = {**(meta or {}), "quota": quota.summary()}
        run.ended_at = datetime.now(timezone.utc)
        self.db.commit()

    def _fail_run(self, run: RefreshRun, quota: QuotaTracker, exc: Exception) -> None:
        self.db.rollback()
        run.status = "failure"
        run.quota_used = quota.total
        run.error_message = str(exc)
        run.meta = {"quota": quota.summary()}
        run.ended_at = datetime.now(timezone.utc)
        self.db.add(run)
        self.db.commit()
