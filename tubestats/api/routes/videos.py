"""Video and snapshot routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from tubestats.api.deps import get_db
from tubestats.schemas.api import Envelope, PageEnvelope, SnapshotOut, VideoOut, VideoWithStatisticsOut
from tubestats.services.data_service import DataService

router = APIRouter(tags=["videos"])


@router.get("/videos", response_model=PageEnvelope[list[VideoOut]])
def list_videos(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    q: Optional[str] = Query(None, description="Case-insensitive substring of the video title"),
    channel_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    videos, pagination = DataService(db).get_videos(page=page, limit=limit, q=q, channel_id=channel_id)
    return PageEnvelope[list[VideoOut]](
        data=[VideoOut.model_validate(v) for v in videos],
        pagination=pagination,
    )


@router.get("/videos/{item_id}", response_model=Envelope[VideoWithStatisticsOut])
def get_video(item_id: str, db: Session = Depends(get_db)):
    """A video with every statistics snapshot recorded for it, newest first."""
    found = DataService(db).get_video_with_statistics(item_id)
    if not found:
        raise HTTPException(status_code=404, detail=f"Video '{item_id}' not found")

    video, snapshots = found
    payload = VideoWithStatisticsOut(
        **VideoOut.model_validate(video).model_dump(),
        statistics=[SnapshotOut.model_validate(s) for s in snapshots],
    )
    return Envelope[VideoWithStatisticsOut](data=payload)


@router.get("/snapshots", response_model=PageEnvelope[list[SnapshotOut]])
def list_snapshots(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    video_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    snapshots, pagination = DataService(db).get_snapshots(page=page, limit=limit, video_id=video_id)
    return PageEnvelope[list[SnapshotOut]](
        data=[SnapshotOut.model_validate(s) for s in snapshots],
        pagination=pagination,
    )
