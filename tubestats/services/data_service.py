"""Data Service - paginated read queries for the API layer."""

from __future__ import annotations

import math
from typing import Any, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from tubestats.models.channel import Channel
from tubestats.models.runs import RefreshRun
from tubestats.models.statistics import VideoStatistics
from tubestats.models.video import Video
from tubestats.schemas.api import Pagination
from tubestats.services.snapshot_store import SnapshotStore


def paginate(page: int, limit: int, total: int) -> Tuple[int, Pagination]:
    """Return the row offset for ``page`` (1-based) and the pagination block."""
    offset = (page - 1) * limit
    total_pages = math.ceil(total / limit) if limit else 0
    return offset, Pagination(page=page, limit=limit, total=total, total_pages=total_pages)


class DataService:
    """Handles read operations - no writes."""

    def __init__(self, db: Session):
        self.db = db
        self.store = SnapshotStore(db)

    def get_channels(self, page: int, limit: int, q: Optional[str] = None) -> Tuple[List[Channel], Pagination]:
        offset, pagination = paginate(page, limit, self.store.count_channels(q=q))
        return self.store.list_channels(q=q, limit=limit, offset=offset), pagination

    def get_videos(
        self,
        page: int,
        limit: int,
        q: Optional[str] = None,
        channel_id: Optional[str] = None,
    ) -> Tuple[List[Video], Pagination]:
        channel_ids = [channel_id] if channel_id else None
        offset, pagination = paginate(page, limit, self.store.count_videos(channel_ids=channel_ids, q=q))
        videos = self.store.list_videos(channel_ids=channel_ids, q=q, limit=limit, offset=offset)
        return videos, pagination

    def get_snapshots(
        self,
        page: int,
        limit: int,
        video_id: Optional[str] = None,
    ) -> Tuple[List[VideoStatistics], Pagination]:
        item_ids = [video_id] if video_id else None
        offset, pagination = paginate(page, limit, self.store.count_snapshots(item_ids=item_ids))
        return self.store.list_snapshots(item_ids=item_ids, limit=limit, offset=offset), pagination

    def get_video_with_statistics(self, item_id: str) -> Optional[Tuple[Video, List[VideoStatistics]]]:
        """A video and its full snapshot history, newest first."""
        video = self.store.get_video(item_id)
        if video is None:
            return None
        return video, self.store.list_snapshots(item_ids=[item_id])

    # -------------------------------------------------------------------------
    # Refresh runs
    # -------------------------------------------------------------------------
    def get_refresh_runs(
        self,
        operation: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 10,
    ) -> List[RefreshRun]:
        stmt = select(RefreshRun)
        if operation:
            stmt = stmt.where(RefreshRun.operation == operation)
        if status:
            stmt = stmt.where(RefreshRun.status == status)
        stmt = stmt.order_by(RefreshRun.started_at.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def get_latest_run(self) -> Optional[RefreshRun]:
        stmt = select(RefreshRun).order_by(RefreshRun.started_at.desc()).limit(1)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_summary(self) -> dict[str, Any]:
        return {
            "channels": self.store.count_channels(),
            "videos": self.store.count_videos(),
            "snapshots": self.store.count_snapshots(),
        }
