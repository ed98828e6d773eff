"""Aggregated statistics and rankings."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tubestats.api.deps import get_cache_store, get_db
from tubestats.core.cache import CacheStore
from tubestats.schemas.api import Envelope, Metric, RankedVideo, RollupResponse
from tubestats.services.ranking_service import DEFAULT_TOP_LIMIT, RankingService
from tubestats.services.rollup_service import RollupService

router = APIRouter(tags=["statistics"])


@router.get("/statistics", response_model=RollupResponse)
def channel_rollups(db: Session = Depends(get_db), cache: CacheStore = Depends(get_cache_store)):
    """
    Total likes, comments and views of every channel, from each video's latest snapshot.

    Served from cache for up to an hour; ``source`` tells whether it was recomputed.
    """
    rollups, source = RollupService(db, cache=cache).get_channel_rollups()
    return RollupResponse(source=source, data=rollups)


@router.get("/rankings/top", response_model=Envelope[list[RankedVideo]])
def top_videos(
    metric: Metric = Query("views"),
    limit: int = Query(DEFAULT_TOP_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return Envelope[list[RankedVideo]](data=RankingService(db).top_videos(metric, limit=limit))


@router.get("/rankings/top-per-channel", response_model=Envelope[list[RankedVideo]])
def top_per_channel(metric: Metric = Query("views"), db: Session = Depends(get_db)):
    return Envelope[list[RankedVideo]](data=RankingService(db).top_per_channel(metric))
