"""Append-only statistics snapshots.

Rows are only ever inserted. The current value of a video's statistics is the
row with the greatest ``recorded_at``; equal timestamps are broken by the
greatest ``id`` (the row appended last).
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tubestats.models.base import Base, BigIntPK, JSONType
from tubestats.models.channel import utcnow

if TYPE_CHECKING:
    from tubestats.models.video import Video


class VideoStatistics(Base):
    __tablename__ = "video_statistics"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    video_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("videos.item_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Provider payload as reported (counts are usually strings)
    statistics: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False)

    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    video: Mapped["Video"] = relationship(back_populates="snapshots")

    __table_args__ = (Index("ix_video_statistics_video_recorded", "video_id", "recorded_at"),)
