"""Tracked YouTube channels."""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, List

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tubestats.models.base import Base

if TYPE_CHECKING:
    from tubestats.models.video import Video


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Channel(Base):
    """A channel keyed by its YouTube id.

    Counters are overwritten wholesale on every refresh.
    """

    __tablename__ = "channels"

    external_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)

    thumbnail_url: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)

    upload_handle: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    follower_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    view_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    item_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    videos: Mapped[List["Video"]] = relationship(
        back_populates="channel",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
