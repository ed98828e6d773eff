"""Channel routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from tubestats.api.deps import get_db
from tubestats.schemas.api import ChannelOut, Envelope, PageEnvelope, VideoOut
from tubestats.services.data_service import DataService
from tubestats.services.snapshot_store import SnapshotStore

router = APIRouter(prefix="/channels", tags=["channels"])


@router.get("", response_model=PageEnvelope[list[ChannelOut]])
def list_channels(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    q: Optional[str] = Query(None, description="Case-insensitive substring of the channel name"),
    db: Session = Depends(get_db),
):
    channels, pagination = DataService(db).get_channels(page=page, limit=limit, q=q)
    return PageEnvelope[list[ChannelOut]](
        data=[ChannelOut.model_validate(c) for c in channels],
        pagination=pagination,
    )


@router.get("/{channel_id}", response_model=Envelope[ChannelOut])
def get_channel(channel_id: str, db: Session = Depends(get_db)):
    channel = SnapshotStore(db).get_channel(channel_id)
    if not channel:
        raise HTTPException(status_code=404, detail=f"Channel '{channel_id}' not found")
    return Envelope[ChannelOut](data=ChannelOut.model_validate(channel))


@router.get("/{channel_id}/videos", response_model=PageEnvelope[list[VideoOut]])
def list_channel_videos(
    channel_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    q: Optional[str] = Query(None, description="Case-insensitive substring of the video title"),
    db: Session = Depends(get_db),
):
    service = DataService(db)
    if not service.store.get_channel(channel_id):
        raise HTTPException(status_code=404, detail=f"Channel '{channel_id}' not found")
    videos, pagination = service.get_videos(page=page, limit=limit, q=q, channel_id=channel_id)
    return PageEnvelope[list[VideoOut]](
        data=[VideoOut.model_validate(v) for v in videos],
        pagination=pagination,
    )
