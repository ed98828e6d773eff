from datetime import datetime
from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")

Metric = Literal["views", "likes", "comments"]


class ChannelOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    external_id: str
    name: str
    thumbnail_url: Optional[str] = None
    upload_handle: str
    follower_count: int
    view_count: int
    item_count: int
    created_at: datetime
    updated_at: datetime


class VideoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: str
    channel_id: str
    title: str
    url: str
    thumbnail_url: str
    created_at: datetime
    updated_at: datetime


class SnapshotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    video_id: str
    statistics: dict[str, Any]
    recorded_at: datetime


class VideoWithStatisticsOut(VideoOut):
    statistics: list[SnapshotOut]


class RankedVideo(BaseModel):
    item_id: str
    channel_id: str
    title: str
    url: str
    thumbnail_url: str
    metric: Metric
    value: int
    recorded_at: Optional[datetime] = None


class ChannelRollup(BaseModel):
    channel_id: str
    channel_name: str
    video_count: int = 0
    total_views: int = 0
    total_likes: int = 0
    total_comments: int = 0


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class Envelope(BaseModel, Generic[T]):
    """Every response carries a human-readable status string and its payload."""

    status: str = "200 OK"
    data: T


class PageEnvelope(Envelope[T], Generic[T]):
    pagination: Pagination


class QuotaOut(BaseModel):
    total: int
    calls: int
    by_operation: dict[str, int]


class FailedBatchOut(BaseModel):
    item_ids: list[str]
    error: Optional[str] = None


class IngestionResponse(BaseModel):
    status: str
    outcome: Literal["success", "partial", "not_found"]
    elapsed_ms: int
    quota: QuotaOut
    channel: Optional[ChannelOut] = None
    items_processed: int = 0
    snapshots_appended: int = 0
    failed_batches: list[FailedBatchOut] = []
    run_id: Optional[str] = None


class ChannelRefreshOut(BaseModel):
    channel_id: str
    status: Literal["success", "not_found", "failed"]
    error: Optional[str] = None


class RefreshAllResponse(BaseModel):
    status: str
    elapsed_ms: int
    quota: QuotaOut
    succeeded: int
    failed: int
    outcomes: list[ChannelRefreshOut]
    run_id: Optional[str] = None


class RollupResponse(BaseModel):
    status: str = "200 OK"
    source: Literal["cache", "computed"]
    data: list[ChannelRollup]


class RefreshRunOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    run_id: str
    operation: str
    target: Optional[str] = None
    status: str
    quota_used: int
    items_processed: int
    snapshots_appended: int
    error_message: Optional[str] = None
    started_at: datetime
    ended_at: Optional[datetime] = None


class HealthResponse(BaseModel):
    database: str
    last_refresh_status: Optional[str] = None


class ErrorResponse(BaseModel):
    status: str
    message: str
    quota: Optional[QuotaOut] = None
