"""Latest-snapshot resolution.

For every video the current statistics are those of the snapshot with the
greatest ``recorded_at``; on equal timestamps the greatest snapshot ``id`` wins.
The same rule is implemented twice, as a SQL window function used by the
ranking queries and as an in-memory reduction, and both must agree.

Metric values follow the same split: ``LatestStatistics.metric`` parses them in
Python and ``metric_value`` computes them in SQL so ranking can sort and limit
in the database. Plain decimal counters (YouTube's format) agree in both;
signed or exponent forms count as 0 in SQL.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import BigInteger, Numeric, String, Subquery, case, cast, func, select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from tubestats.ingestion.parsing import parse_count
from tubestats.models.statistics import VideoStatistics

METRIC_FIELDS: Dict[str, str] = {
    "views": "viewCount",
    "likes": "likeCount",
    "comments": "commentCount",
}


def metric_field(metric: str) -> str:
    """Map a public metric name to the provider's statistics key."""
    try:
        return METRIC_FIELDS[metric]
    except KeyError:
        raise ValueError(f"Unknown metric {metric!r}; expected one of {sorted(METRIC_FIELDS)}") from None


# Digits with an optional fractional part; the fraction is truncated
NUMERIC_COUNTER = r"^[0-9]+(\.[0-9]*)?$"


def metric_value(statistics: ColumnElement, metric: str, dialect: str) -> ColumnElement:
    """SQL expression for a metric of a JSON statistics column, 0 when absent or not numeric."""
    raw = func.trim(statistics[metric_field(metric)].as_string(), type_=String)
    if dialect == "postgresql":
        number = cast(func.trunc(cast(raw, Numeric)), BigInteger)
    else:
        # SQLite casts the longest integer prefix
        number = cast(raw, BigInteger)
    return case((raw.regexp_match(NUMERIC_COUNTER), number), else_=0)


@dataclass
class LatestStatistics:
    item_id: str
    snapshot_id: Optional[int] = None
    recorded_at: Optional[datetime] = None
    statistics: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_snapshot(self) -> bool:
        return self.snapshot_id is not None

    def metric(self, name: str) -> int:
        """Value of ``views``/``likes``/``comments``, 0 when absent or not numeric."""
        return parse_count(self.statistics.get(metric_field(name)))


def _sort_key(snapshot: VideoStatistics):
    return (snapshot.recorded_at, snapshot.id)


def select_latest(snapshots: Iterable[VideoStatistics]) -> Dict[str, VideoStatistics]:
    """In-memory reduction: latest snapshot per video id."""
    latest: Dict[str, VideoStatistics] = {}
    for snapshot in snapshots:
        current = latest.get(snapshot.video_id)
        if current is None or _sort_key(snapshot) > _sort_key(current):
            latest[snapshot.video_id] = snapshot
    return latest


def latest_snapshots_subquery(item_ids: Optional[Iterable[str]] = None) -> Subquery:
    """One row per video: its latest snapshot's id, statistics and ``recorded_at``."""
    rank = (
        func.row_number()
        .over(
            partition_by=VideoStatistics.video_id,
            order_by=(VideoStatistics.recorded_at.desc(), VideoStatistics.id.desc()),
        )
        .label("rank")
    )
    ranked = select(
        VideoStatistics.id.label("snapshot_id"),
        VideoStatistics.video_id,
        VideoStatistics.statistics,
        VideoStatistics.recorded_at,
        rank,
    )
    if item_ids is not None:
        ranked = ranked.where(VideoStatistics.video_id.in_(list(item_ids)))
    ranked = ranked.subquery("ranked_statistics")

    return (
        select(
            ranked.c.snapshot_id,
            ranked.c.video_id,
            ranked.c.statistics,
            ranked.c.recorded_at,
        )
        .where(ranked.c.rank == 1)
        .subquery("latest_statistics")
    )


def resolve_latest(db: Session, item_ids: Iterable[str]) -> Dict[str, LatestStatistics]:
    """Latest statistics for each requested video; videos without snapshots get an empty map."""
    requested = list(dict.fromkeys(item_ids))
    resolved: Dict[str, LatestStatistics] = {item_id: LatestStatistics(item_id) for item_id in requested}
    if not requested:
        return resolved

    latest = latest_snapshots_subquery(requested)
    for row in db.execute(select(latest)).all():
        resolved[row.video_id] = LatestStatistics(
            item_id=row.video_id,
            snapshot_id=row.snapshot_id,
            recorded_at=row.recorded_at,
            statistics=row.statistics or {},
        )
    return resolved
