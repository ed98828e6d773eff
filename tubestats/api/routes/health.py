"""Health routes - System health and readiness checks."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tubestats.api.deps import get_db
from tubestats.schemas.api import HealthResponse
from tubestats.services.data_service import DataService

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse)
def health(response: Response, db: Session = Depends(get_db)):
    """
    Checks database connectivity and the status of the last refresh run.

    Returns 503 if the database is unreachable.
    """
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        response.status_code = 503
        return HealthResponse(database=f"down: {e}")

    last_run = DataService(db).get_latest_run()
    return HealthResponse(database="ok", last_refresh_status=last_run.status if last_run else None)


@router.get("/ready")
def readiness(response: Response, db: Session = Depends(get_db)):
    """Readiness probe - 200 if the service can serve traffic, 503 otherwise."""
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ready", "timestamp": datetime.now(timezone.utc).isoformat()}
    except SQLAlchemyError as e:
        response.status_code = 503
        return {"status": "not_ready", "error": str(e), "timestamp": datetime.now(timezone.utc).isoformat()}
