"""Bounded concurrent refresh of many channels."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Literal, Optional

from tubestats.core.config import settings
from tubestats.core.logging import get_logger

log = get_logger("ingestion.scheduler")

RefreshStatus = Literal["success", "not_found", "failed"]

# Refreshes one channel and reports "success" or "not_found"; raising means failure
RefreshUnit = Callable[[str], Awaitable[RefreshStatus]]


@dataclass
class ChannelRefreshOutcome:
    channel_id: str
    status: RefreshStatus
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != "failed"


class RefreshScheduler:
    """Runs one refresh unit per channel with at most ``limit`` in flight.

    Units beyond the limit wait for a slot. A unit that raises is reported as a
    failed outcome and does not affect the others. Outcomes come back in
    completion order.
    """

    def __init__(self, limit: Optional[int] = None):
        self.limit = limit or settings.REFRESH_CONCURRENCY
        if self.limit < 1:
            raise ValueError("concurrency limit must be at least 1")

    async def run(self, channel_ids: Iterable[str], refresh_one: RefreshUnit) -> List[ChannelRefreshOutcome]:
        semaphore = asyncio.Semaphore(self.limit)

        async def guarded(channel_id: str) -> ChannelRefreshOutcome:
            async with semaphore:
                try:
                    status = await refresh_one(channel_id)
                except Exception as exc:  # noqa: BLE001
                    log.error(f"Error refreshing channel {channel_id}: {exc}")
                    return ChannelRefreshOutcome(channel_id, "failed", str(exc))
            return ChannelRefreshOutcome(channel_id, status)

        tasks = [asyncio.create_task(guarded(channel_id)) for channel_id in channel_ids]
        outcomes: List[ChannelRefreshOutcome] = []
        for next_done in asyncio.as_completed(tasks):
            outcomes.append(await next_done)

        failed = sum(1 for o in outcomes if not o.ok)
        log.info(f"Refreshed {len(outcomes)} channels (limit={self.limit}, failed={failed})")
        return outcomes
