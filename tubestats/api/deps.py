"""API dependencies"""

from typing import Generator

from sqlalchemy.orm import Session

from tubestats.core.cache import CacheStore, get_cache
from tubestats.core.db import SessionLocal
from tubestats.ingestion.youtube_client import YouTubeClient
from tubestats.services.ingestion_service import ClientFactory


def get_db() -> Generator[Session, None, None]:
    """One session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_cache_store() -> CacheStore:
    return get_cache()


def get_client_factory() -> ClientFactory:
    """Overridden in tests to point the client at a mock transport."""
    return YouTubeClient
