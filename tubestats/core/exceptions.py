"""Exceptions raised by the ingestion core."""

from __future__ import annotations

from typing import Any, Dict, Optional


class TubestatsError(Exception):
    """Base class for all tubestats errors."""


class InvalidChannelIdentifier(TubestatsError):
    """The identifier matches none of the recognized handle/URL forms."""

    def __init__(self, identifier: str, reason: str):
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"Cannot resolve channel identifier {identifier!r}: {reason}")


class UpstreamError(TubestatsError):
    """A call to the YouTube Data API failed (network, 5xx, unreadable body)."""

    def __init__(self, operation: str, message: str, status_code: Optional[int] = None):
        self.operation = operation
        self.status_code = status_code
        super().__init__(f"{operation} failed: {message}")


class IngestionWriteError(TubestatsError):
    """A persistence step of an ingestion failed after earlier steps were committed."""

    def __init__(self, stage: str, cause: Exception, quota: Optional[Dict[str, Any]] = None):
        self.stage = stage
        self.cause = cause
        self.quota = quota or {}
        super().__init__(f"Ingestion failed while writing {stage}: {cause}")
