# Services package
from tubestats.services.data_service import DataService
from tubestats.services.ingestion_service import IngestionService
from tubestats.services.ranking_service import RankingService
from tubestats.services.rollup_service import RollupService
from tubestats.services.snapshot_store import SnapshotStore

__all__ = [
    "DataService",
    "IngestionService",
    "RankingService",
    "RollupService",
    "SnapshotStore",
]
