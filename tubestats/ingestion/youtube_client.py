"""YouTube Data API v3 client.

Every call is charged to the ``QuotaTracker`` of the operation that owns the
client. Failures are classified per call site:

- channel lookups raise ``UpstreamError``;
- playlist pagination stops early and logs;
- statistics batches are isolated into failed ``BatchOutcome`` entries.

A 200 response whose body is unreadable counts as a failure of that call.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

import httpx

from tubestats.core.config import settings
from tubestats.core.exceptions import InvalidChannelIdentifier, UpstreamError
from tubestats.core.logging import get_logger
from tubestats.core.quota import QuotaTracker
from tubestats.ingestion.identifiers import (
    ResolvedIdentifier,
    UnresolvedIdentifier,
    parse_channel_identifier,
)
from tubestats.ingestion.parsing import best_thumbnail, parse_count
from tubestats.schemas.upstream import ChannelDescriptor, ItemDescriptor, StatisticsDescriptor

log = get_logger("ingestion.youtube")

PLAYLIST_PAGE_SIZE = 50

# Raised while reading a 200 response whose body does not have the documented shape
PAYLOAD_ERRORS = (AttributeError, KeyError, TypeError, ValueError)


@dataclass
class BatchOutcome:
    """Result of one videos.list call."""

    item_ids: List[str]
    ok: bool
    statistics: List[StatisticsDescriptor] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class StatisticsFetchResult:
    batches: List[BatchOutcome]

    @property
    def statistics(self) -> List[StatisticsDescriptor]:
        return [stat for batch in self.batches if batch.ok for stat in batch.statistics]

    @property
    def failed_batches(self) -> List[BatchOutcome]:
        return [batch for batch in self.batches if not batch.ok]


class YouTubeClient:
    """Thin async wrapper over the channels, playlistItems and videos endpoints.

    Use as an async context manager to share one connection pool across calls;
    otherwise a short-lived ``httpx.AsyncClient`` is opened per request.
    """

    name = "youtube"

    def __init__(
        self,
        quota: QuotaTracker,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        batch_size: Optional[int] = None,
        batch_concurrency: Optional[int] = None,
    ):
        self.quota = quota
        self.api_key = api_key if api_key is not None else settings.YOUTUBE_API_KEY
        self.base_url = (base_url or settings.YOUTUBE_API_BASE_URL).rstrip("/")
        self.batch_size = batch_size or settings.STATISTICS_BATCH_SIZE
        self.batch_concurrency = batch_concurrency or settings.STATISTICS_BATCH_CONCURRENCY
        self._http = http_client
        self._owns_http = False

    async def __aenter__(self) -> "YouTubeClient":
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
            self._owns_http = True
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None
            self._owns_http = False

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------
    async def _get(self, operation: str, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET ``path`` and return the decoded body, charging ``operation`` once answered."""
        url = f"{self.base_url}/{path}"
        query = dict(params)
        if self.api_key:
            query["key"] = self.api_key

        try:
            if self._http is not None:
                resp = await self._http.get(url, params=query)
            else:
                async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
                    resp = await client.get(url, params=query)
        except httpx.HTTPError as exc:
            raise UpstreamError(operation, f"{type(exc).__name__}: {exc}") from exc

        self.quota.charge_call(operation)

        if resp.status_code >= 400:
            raise UpstreamError(operation, f"HTTP {resp.status_code}: {resp.text[:200]}", resp.status_code)
        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamError(operation, "response body is not JSON", resp.status_code) from exc
        if not isinstance(data, dict):
            raise UpstreamError(operation, "unexpected response shape", resp.status_code)
        return data

    # -------------------------------------------------------------------------
    # Channels
    # -------------------------------------------------------------------------
    async def resolve_channel(self, identifier: str) -> Optional[ChannelDescriptor]:
        """Resolve a handle/URL to channel metadata; ``None`` when YouTube knows no such channel."""
        parsed = parse_channel_identifier(identifier)
        if isinstance(parsed, UnresolvedIdentifier):
            raise InvalidChannelIdentifier(identifier, parsed.reason)
        return await self.fetch_channel_metadata(parsed)

    async def fetch_channel_metadata(self, identifier: ResolvedIdentifier) -> Optional[ChannelDescriptor]:
        params = {
            "part": "snippet,contentDetails,statistics",
            identifier.lookup_param: identifier.value,
        }
        data = await self._get("channels.list", "channels", params)

        try:
            items = data.get("items") or []
            if not items:
                log.warning(f"No channel found for {identifier.kind}={identifier.value}")
                return None
            return self._channel_from_item(items[0])
        except PAYLOAD_ERRORS as exc:
            raise UpstreamError("channels.list", f"unreadable channel payload: {exc!r}") from exc

    async def fetch_channel_by_id(self, channel_id: str) -> Optional[ChannelDescriptor]:
        return await self.fetch_channel_metadata(ResolvedIdentifier("channel_id", channel_id))

    @staticmethod
    def _channel_from_item(item: Dict[str, Any]) -> Optional[ChannelDescriptor]:
        snippet = item.get("snippet") or {}
        stats = item.get("statistics") or {}
        uploads = ((item.get("contentDetails") or {}).get("relatedPlaylists") or {}).get("uploads")
        channel_id = item.get("id")

        if not channel_id or not uploads:
            log.warning(f"Channel payload without id or uploads playlist: id={channel_id}")
            return None

        return ChannelDescriptor(
            external_id=channel_id,
            name=snippet.get("customUrl") or snippet.get("title") or channel_id,
            thumbnail_url=best_thumbnail(snippet.get("thumbnails")),
            upload_handle=uploads,
            follower_count=parse_count(stats.get("subscriberCount")),
            view_count=parse_count(stats.get("viewCount")),
            item_count=parse_count(stats.get("videoCount")),
        )

    # -------------------------------------------------------------------------
    # Uploads playlist
    # -------------------------------------------------------------------------
    async def list_uploaded_items(self, upload_handle: str) -> AsyncIterator[ItemDescriptor]:
        """Yield every video of an uploads playlist, one page at a time.

        A failed or unreadable page ends the listing; already-yielded items stand.
        """
        page_token: Optional[str] = None
        pages = 0

        while True:
            params: Dict[str, Any] = {
                "part": "snippet",
                "maxResults": PLAYLIST_PAGE_SIZE,
                "playlistId": upload_handle,
            }
            if page_token:
                params["pageToken"] = page_token

            try:
                data = await self._get("playlistItems.list", "playlistItems", params)
            except UpstreamError as exc:
                log.warning(f"Playlist {upload_handle} listing stopped after {pages} page(s): {exc}")
                return

            try:
                descriptors = [self._item_from_playlist_entry(item) for item in data.get("items") or []]
                page_token = data.get("nextPageToken")
            except PAYLOAD_ERRORS as exc:
                log.warning(f"Playlist {upload_handle} page {pages + 1} is unreadable, listing stopped: {exc!r}")
                return

            pages += 1
            for descriptor in descriptors:
                if descriptor is not None:
                    yield descriptor

            if not page_token:
                log.debug(f"Playlist {upload_handle} exhausted after {pages} page(s)")
                return

    @staticmethod
    def _item_from_playlist_entry(item: Dict[str, Any]) -> Optional[ItemDescriptor]:
        snippet = item.get("snippet") or {}
        video_id = (snippet.get("resourceId") or {}).get("videoId")
        if not video_id:
            return None
        return ItemDescriptor(
            item_id=video_id,
            title=snippet.get("title") or "",
            thumbnail_url=best_thumbnail(snippet.get("thumbnails")) or "",
        )

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------
    async def fetch_statistics(self, item_ids: Iterable[str]) -> StatisticsFetchResult:
        """Fetch statistics in batches of ``batch_size`` ids, concurrently."""
        unique_ids = list(dict.fromkeys(i for i in item_ids if i))
        batches = [unique_ids[i : i + self.batch_size] for i in range(0, len(unique_ids), self.batch_size)]
        semaphore = asyncio.Semaphore(self.batch_concurrency)

        async def run(batch: List[str]) -> BatchOutcome:
            async with semaphore:
                return await self._fetch_statistics_batch(batch)

        outcomes = await asyncio.gather(*(run(batch) for batch in batches))
        result = StatisticsFetchResult(list(outcomes))

        if result.failed_batches:
            log.warning(f"{len(result.failed_batches)}/{len(batches)} statistics batches failed")
        return result

    async def _fetch_statistics_batch(self, item_ids: List[str]) -> BatchOutcome:
        try:
            data = await self._get("videos.list", "videos", {"part": "statistics", "id": ",".join(item_ids)})
            statistics = self._statistics_from_payload(data)
        except UpstreamError as exc:
            log.error(f"Error fetching video statistics for {len(item_ids)} ids ({item_ids[0]}..): {exc}")
            return BatchOutcome(item_ids=item_ids, ok=False, error=str(exc))

        return BatchOutcome(item_ids=item_ids, ok=True, statistics=statistics)

    @staticmethod
    def _statistics_from_payload(data: Dict[str, Any]) -> List[StatisticsDescriptor]:
        """One descriptor per returned video; all share the batch's ``recorded_at``."""
        recorded_at = datetime.now(timezone.utc)
        try:
            return [
                StatisticsDescriptor(
                    item_id=item["id"],
                    statistics=item.get("statistics") or {},
                    recorded_at=recorded_at,
                )
                for item in data.get("items") or []
                if item.get("id")
            ]
        except PAYLOAD_ERRORS as exc:
            raise UpstreamError("videos.list", f"unreadable statistics payload: {exc!r}") from exc
