"""Videos belonging to a channel."""

from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tubestats.models.base import Base
from tubestats.models.channel import utcnow

if TYPE_CHECKING:
    from tubestats.models.channel import Channel
    from tubestats.models.statistics import VideoStatistics

WATCH_URL = "https://www.youtube.com/watch?v={item_id}"


def watch_url(item_id: str) -> str:
    return WATCH_URL.format(item_id=item_id)


class Video(Base):
    __tablename__ = "videos"

    item_id: Mapped[str] = mapped_column(String(32), primary_key=True)

    channel_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("channels.external_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(String, nullable=False)
    thumbnail_url: Mapped[str] = mapped_column(String, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    channel: Mapped["Channel"] = relationship(back_populates="videos")

    snapshots: Mapped[List["VideoStatistics"]] = relationship(
        back_populates="video",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="VideoStatistics.recorded_at",
    )
