"""Run routes - ingestion/refresh observability."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tubestats.api.deps import get_db
from tubestats.schemas.api import Envelope, RefreshRunOut
from tubestats.services.data_service import DataService

router = APIRouter(prefix="/runs", tags=["runs"])


@router.get("", response_model=Envelope[list[RefreshRunOut]])
def get_refresh_runs(
    operation: Optional[str] = Query(None, description="ingest_channel or refresh_all"),
    status: Optional[str] = Query(None, description="running, success, partial, not_found, failure"),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Recent runs with quota used, counts and error messages."""
    runs = DataService(db).get_refresh_runs(operation=operation, status=status, limit=limit)
    return Envelope[list[RefreshRunOut]](
        data=[
            RefreshRunOut(
                run_id=str(run.run_id),
                operation=run.operation,
                target=run.target,
                status=run.status,
                quota_used=run.quota_used,
                items_processed=run.items_processed,
                snapshots_appended=run.snapshots_appended,
                error_message=run.error_message,
                started_at=run.started_at,
                ended_at=run.ended_at,
            )
            for run in runs
        ]
    )


@router.get("/summary")
def get_summary(db: Session = Depends(get_db)):
    """Row counts of the tracked tables."""
    return Envelope[dict](data=DataService(db).get_summary())
