"""Normalized records produced by the YouTube client."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class ChannelDescriptor(BaseModel):
    """Channel metadata as returned by channels.list."""

    external_id: str
    name: str
    thumbnail_url: Optional[str] = None
    upload_handle: str
    follower_count: int = 0
    view_count: int = 0
    item_count: int = 0


class ItemDescriptor(BaseModel):
    """One entry of an uploads playlist."""

    item_id: str
    title: str
    thumbnail_url: str = ""


class StatisticsDescriptor(BaseModel):
    """Statistics of one video at one point in time."""

    item_id: str
    statistics: dict[str, Any] = Field(default_factory=dict)
    recorded_at: datetime
