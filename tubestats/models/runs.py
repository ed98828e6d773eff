"""Ledger of ingestion and refresh runs; backs /runs and /health."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tubestats.models.base import Base, JSONType
from tubestats.models.channel import utcnow


class RefreshRun(Base):
    __tablename__ = "refresh_runs"

    run_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    operation: Mapped[str] = mapped_column(String(32), nullable=False)  # ingest_channel | refresh_all

    target: Mapped[str | None] = mapped_column(String, nullable=True)

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,  # running | success | partial | not_found | failure
    )

    quota_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    snapshots_appended: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    error_message: Mapped[str | None] = mapped_column(String, nullable=True)

    # "metadata" attribute name is reserved by SQLAlchemy; use column name metadata with safe attribute.
    meta: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
