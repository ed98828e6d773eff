"""Ranking and per-channel rollup queries over the latest snapshots.

Ordering, limits and sums run in the database; only the returned rows are
materialized.
"""

from __future__ import annotations

from typing import List

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from tubestats.core.logging import get_logger
from tubestats.models.channel import Channel
from tubestats.models.video import Video
from tubestats.schemas.api import ChannelRollup, Metric, RankedVideo
from tubestats.services.resolver import latest_snapshots_subquery, metric_value

log = get_logger("ranking_service")

DEFAULT_TOP_LIMIT = 5


class RankingService:
    """Read-only queries; every video counts, with zeros when it has no snapshot."""

    def __init__(self, db: Session):
        self.db = db

    @property
    def dialect(self) -> str:
        return self.db.get_bind().dialect.name

    def _ranked_videos(self, metric: Metric) -> Select:
        """Every video with the metric of its latest snapshot as ``value``."""
        latest = latest_snapshots_subquery()
        return select(
            Video.item_id,
            Video.channel_id,
            Video.title,
            Video.url,
            Video.thumbnail_url,
            metric_value(latest.c.statistics, metric, self.dialect).label("value"),
            latest.c.recorded_at,
        ).outerjoin(latest, latest.c.video_id == Video.item_id)

    @staticmethod
    def _to_ranked(rows, metric: Metric) -> List[RankedVideo]:
        return [
            RankedVideo(
                item_id=row.item_id,
                channel_id=row.channel_id,
                title=row.title,
                url=row.url,
                thumbnail_url=row.thumbnail_url,
                metric=metric,
                value=int(row.value),
                recorded_at=row.recorded_at,
            )
            for row in rows
        ]

    def top_videos(self, metric: Metric, limit: int = DEFAULT_TOP_LIMIT) -> List[RankedVideo]:
        """Top ``limit`` videos by the metric of their latest snapshot; ties go to the smaller id."""
        ranked = self._ranked_videos(metric).subquery("ranked_videos")
        if limit < 1:
            return []
        stmt = select(ranked).order_by(ranked.c.value.desc(), ranked.c.item_id).limit(limit)
        return self._to_ranked(self.db.execute(stmt).all(), metric)

    def top_per_channel(self, metric: Metric) -> List[RankedVideo]:
        """Best video of every channel that has videos."""
        ranked = self._ranked_videos(metric).subquery("ranked_videos")
        position = (
            func.row_number()
            .over(partition_by=ranked.c.channel_id, order_by=(ranked.c.value.desc(), ranked.c.item_id))
            .label("position")
        )
        per_channel = select(ranked, position).subquery("per_channel")

        stmt = (
            select(per_channel)
            .where(per_channel.c.position == 1)
            .order_by(per_channel.c.value.desc(), per_channel.c.channel_id)
        )
        return self._to_ranked(self.db.execute(stmt).all(), metric)

    def channel_rollups(self) -> List[ChannelRollup]:
        """Sum of latest views/likes/comments per channel, including channels without videos."""
        latest = latest_snapshots_subquery()

        def total(metric: Metric):
            return func.coalesce(func.sum(metric_value(latest.c.statistics, metric, self.dialect)), 0)

        stmt = (
            select(
                Channel.external_id,
                Channel.name,
                func.count(Video.item_id).label("video_count"),
                total("views").label("total_views"),
                total("likes").label("total_likes"),
                total("comments").label("total_comments"),
            )
            .select_from(Channel)
            .outerjoin(Video, Video.channel_id == Channel.external_id)
            .outerjoin(latest, latest.c.video_id == Video.item_id)
            .group_by(Channel.external_id, Channel.name)
            .order_by(Channel.external_id)
        )

        rollups = [
            ChannelRollup(
                channel_id=row.external_id,
                channel_name=row.name,
                video_count=row.video_count,
                # Postgres sums BIGINT to NUMERIC
                total_views=int(row.total_views),
                total_likes=int(row.total_likes),
                total_comments=int(row.total_comments),
            )
            for row in self.db.execute(stmt).all()
        ]
        log.debug(f"Computed rollups for {len(rollups)} channels")
        return rollups
