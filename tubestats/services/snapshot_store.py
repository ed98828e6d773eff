"""Snapshot Store - the only writer of channels, videos and statistics snapshots."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import Select, func, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tubestats.core.logging import get_logger
from tubestats.models.channel import Channel, utcnow
from tubestats.models.statistics import VideoStatistics
from tubestats.models.video import Video, watch_url
from tubestats.schemas.upstream import ChannelDescriptor, ItemDescriptor, StatisticsDescriptor

log = get_logger("snapshot_store")

UPSERT_CHUNK_SIZE = 500


class SnapshotStore:
    """Upserts metadata, appends snapshots and serves read accessors.

    Each write method is one transaction: committed on success, rolled back and
    re-raised on failure. Nothing spans several write methods.
    """

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------
    def _upsert(self, model: Any):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(model)
        if dialect == "sqlite":
            return sqlite.insert(model)
        raise NotImplementedError(f"Upserts are not supported on {dialect}")

    def _commit(self, what: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            log.exception(f"Commit failed while writing {what}")
            raise

    def upsert_channel(self, descriptor: ChannelDescriptor) -> Channel:
        """Insert or update a channel by external id; ``created_at`` is preserved."""
        now = utcnow()
        stmt = self._upsert(Channel).values({**descriptor.model_dump(), "created_at": now, "updated_at": now})
        stmt = stmt.on_conflict_do_update(
            index_elements=[Channel.external_id],
            set_={
                "name": stmt.excluded.name,
                "thumbnail_url": stmt.excluded.thumbnail_url,
                "upload_handle": stmt.excluded.upload_handle,
                "follower_count": stmt.excluded.follower_count,
                "view_count": stmt.excluded.view_count,
                "item_count": stmt.excluded.item_count,
                "updated_at": now,
            },
        )
        try:
            self.db.execute(stmt)
        except SQLAlchemyError:
            self.db.rollback()
            log.exception(f"Failed to upsert channel {descriptor.external_id}")
            raise
        self._commit("channel")

        channel = self.db.get(Channel, descriptor.external_id, populate_existing=True)
        log.info(f"Upserted channel {channel.external_id} ({channel.name})")
        return channel

    def upsert_items(self, descriptors: Iterable[ItemDescriptor], channel_id: str) -> int:
        """Insert or update videos; only title, thumbnail and ``updated_at`` change on conflict."""
        # Postgres refuses to touch the same row twice in one statement
        unique: Dict[str, ItemDescriptor] = {}
        for descriptor in descriptors:
            unique[descriptor.item_id] = descriptor
        if not unique:
            return 0

        now = utcnow()
        rows = [
            {
                "item_id": d.item_id,
                "channel_id": channel_id,
                "title": d.title,
                "url": watch_url(d.item_id),
                "thumbnail_url": d.thumbnail_url or "",
                "created_at": now,
                "updated_at": now,
            }
            for d in unique.values()
        ]

        try:
            for start in range(0, len(rows), UPSERT_CHUNK_SIZE):
                stmt = self._upsert(Video).values(rows[start : start + UPSERT_CHUNK_SIZE])
                stmt = stmt.on_conflict_do_update(
                    index_elements=[Video.item_id],
                    set_={
                        "title": stmt.excluded.title,
                        "thumbnail_url": stmt.excluded.thumbnail_url,
                        "updated_at": now,
                    },
                )
                self.db.execute(stmt)
        except SQLAlchemyError:
            self.db.rollback()
            log.exception(f"Failed to upsert {len(rows)} videos for channel {channel_id}")
            raise
        self._commit("videos")

        log.info(f"Upserted {len(rows)} videos for channel {channel_id}")
        return len(rows)

    def append_snapshots(self, descriptors: Sequence[StatisticsDescriptor]) -> int:
        """Append statistics snapshots.

        Returns how many snapshots were submitted; the count is not re-read from
        the database.
        """
        if not descriptors:
            return 0

        rows = [
            {"video_id": d.item_id, "statistics": d.statistics, "recorded_at": d.recorded_at}
            for d in descriptors
        ]
        try:
            self.db.execute(insert(VideoStatistics), rows)
        except SQLAlchemyError:
            self.db.rollback()
            log.exception(f"Failed to append {len(rows)} statistics snapshots")
            raise
        self._commit("snapshots")

        log.info(f"Appended {len(rows)} statistics snapshots")
        return len(rows)

    # -------------------------------------------------------------------------
    # Channels
    # -------------------------------------------------------------------------
    def get_channel(self, channel_id: str) -> Optional[Channel]:
        return self.db.get(Channel, channel_id)

    def _channels_query(self, channel_ids: Optional[Iterable[str]], q: Optional[str]) -> Select:
        stmt = select(Channel)
        if channel_ids is not None:
            stmt = stmt.where(Channel.external_id.in_(list(channel_ids)))
        if q:
            stmt = stmt.where(Channel.name.ilike(f"%{q}%"))
        return stmt

    def list_channels(
        self,
        channel_ids: Optional[Iterable[str]] = None,
        q: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Channel]:
        stmt = self._channels_query(channel_ids, q).order_by(Channel.name)
        if limit is not None:
            stmt = stmt.limit(limit).offset(offset)
        return list(self.db.execute(stmt).scalars().all())

    def count_channels(self, q: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(self._channels_query(None, q).subquery())
        return self.db.execute(stmt).scalar() or 0

    def channel_ids(self) -> List[str]:
        stmt = select(Channel.external_id).order_by(Channel.external_id)
        return list(self.db.execute(stmt).scalars().all())

    # -------------------------------------------------------------------------
    # Videos
    # -------------------------------------------------------------------------
    def get_video(self, item_id: str) -> Optional[Video]:
        return self.db.get(Video, item_id)

    def _videos_query(
        self,
        channel_ids: Optional[Iterable[str]],
        item_ids: Optional[Iterable[str]],
        q: Optional[str],
    ) -> Select:
        stmt = select(Video)
        if channel_ids is not None:
            stmt = stmt.where(Video.channel_id.in_(list(channel_ids)))
        if item_ids is not None:
            stmt = stmt.where(Video.item_id.in_(list(item_ids)))
        if q:
            stmt = stmt.where(Video.title.ilike(f"%{q}%"))
        return stmt

    def list_videos(
        self,
        channel_ids: Optional[Iterable[str]] = None,
        item_ids: Optional[Iterable[str]] = None,
        q: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Video]:
        stmt = self._videos_query(channel_ids, item_ids, q).order_by(Video.created_at.desc(), Video.item_id)
        if limit is not None:
            stmt = stmt.limit(limit).offset(offset)
        return list(self.db.execute(stmt).scalars().all())

    def count_videos(
        self,
        channel_ids: Optional[Iterable[str]] = None,
        q: Optional[str] = None,
    ) -> int:
        stmt = select(func.count()).select_from(self._videos_query(channel_ids, None, q).subquery())
        return self.db.execute(stmt).scalar() or 0

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------
    def list_snapshots(
        self,
        item_ids: Optional[Iterable[str]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[VideoStatistics]:
        stmt = select(VideoStatistics)
        if item_ids is not None:
            stmt = stmt.where(VideoStatistics.video_id.in_(list(item_ids)))
        stmt = stmt.order_by(VideoStatistics.recorded_at.desc(), VideoStatistics.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit).offset(offset)
        return list(self.db.execute(stmt).scalars().all())

    def count_snapshots(self, item_ids: Optional[Iterable[str]] = None) -> int:
        stmt = select(func.count()).select_from(VideoStatistics)
        if item_ids is not None:
            stmt = stmt.where(VideoStatistics.video_id.in_(list(item_ids)))
        return self.db.execute(stmt).scalar() or 0
