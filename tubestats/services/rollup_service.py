"""Cached per-channel rollups.

Rollups are cached under a generation-tagged key, ``channel_rollups:<generation>``.
Any ingestion that appends snapshots bumps the generation before it reports
success. A reader reads the generation before it queries the store and only
ever stores its result under that generation. A result computed before a
write therefore lands under a superseded key that no later read looks at.
"""

from __future__ import annotations

from typing import List, Literal, Optional, Tuple

from sqlalchemy.orm import Session

from tubestats.core.cache import CacheStore, get_cache
from tubestats.core.config import settings
from tubestats.core.logging import get_logger
from tubestats.schemas.api import ChannelRollup
from tubestats.services.ranking_service import RankingService

log = get_logger("rollup_service")

ROLLUP_CACHE_KEY = "channel_rollups"
ROLLUP_GENERATION_KEY = f"{ROLLUP_CACHE_KEY}:generation"

RollupSource = Literal["cache", "computed"]


def rollup_key(generation: int) -> str:
    return f"{ROLLUP_CACHE_KEY}:{generation}"


class RollupService:
    def __init__(self, db: Session, cache: Optional[CacheStore] = None, ttl: Optional[int] = None):
        self.db = db
        self.cache = cache if cache is not None else get_cache()
        self.ttl = ttl if ttl is not None else settings.ROLLUP_CACHE_TTL_SECONDS

    def current_generation(self) -> int:
        return int(self.cache.get(ROLLUP_GENERATION_KEY) or 0)

    def get_channel_rollups(self) -> Tuple[List[ChannelRollup], RollupSource]:
        generation: Optional[int] = None
        cached = None
        try:
            generation = self.current_generation()
            cached = self.cache.get(rollup_key(generation))
        except Exception as exc:  # noqa: BLE001
            log.warning(f"Rollup cache read failed, recomputing: {exc}")

        if cached is not None:
            return [ChannelRollup.model_validate(item) for item in cached], "cache"

        rollups = RankingService(self.db).channel_rollups()
        if generation is None:
            return rollups, "computed"

        try:
            self.cache.set(rollup_key(generation), [r.model_dump(mode="json") for r in rollups], ttl=self.ttl)
        except Exception as exc:  # noqa: BLE001
            log.warning(f"Rollup cache write failed: {exc}")
        return rollups, "computed"

    def invalidate(self) -> int:
        """Move to a new generation so every earlier rollup is unreachable. Errors propagate to the writer."""
        generation = self.cache.incr(ROLLUP_GENERATION_KEY)
        log.debug(f"Rollup cache generation is now {generation}")
        return generation
