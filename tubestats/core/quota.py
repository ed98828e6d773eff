"""Per-operation accounting of YouTube Data API quota units."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, Optional

from tubestats.core.logging import get_logger

log = get_logger("quota")

# Quota costs published for the YouTube Data API v3
QUOTA_COSTS: Dict[str, Dict[str, int]] = {
    "channels": {"list": 1, "update": 50},
    "playlistItems": {"list": 1, "insert": 50, "update": 50, "delete": 50},
    "videos": {"list": 1, "insert": 1600, "update": 50, "rate": 50, "getRating": 1, "reportAbuse": 50, "delete": 50},
    "search": {"list": 100},
}


def cost_of(operation: str) -> int:
    """Return the cost of an operation named ``resource.method`` (e.g. ``videos.list``)."""
    resource, _, method = operation.partition(".")
    return QUOTA_COSTS[resource][method]


class QuotaTracker:
    """Running quota total for one top-level operation.

    A fresh tracker is created for every ingestion or refresh; it is never shared
    between operations. ``ceiling`` is informational only and is never enforced.
    """

    def __init__(self, ceiling: Optional[int] = None):
        self.ceiling = ceiling
        self.total = 0
        self.calls = 0
        self.by_operation: Dict[str, int] = defaultdict(int)
        self._warned = False

    def charge(self, cost: int, operation: str) -> None:
        self.total += cost
        self.calls += 1
        self.by_operation[operation] += cost
        log.debug(f"Quota used: {cost} for {operation}. Total quota used: {self.total}")

        if self.ceiling is not None and self.total > self.ceiling and not self._warned:
            self._warned = True
            log.warning(f"Quota ceiling {self.ceiling} exceeded (total={self.total})")

    def charge_call(self, operation: str) -> None:
        """Charge the published cost of ``operation``."""
        self.charge(cost_of(operation), operation)

    def summary(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "calls": self.calls,
            "by_operation": dict(self.by_operation),
        }
