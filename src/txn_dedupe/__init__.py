"""Transaction deduplication and reconciliation engine."""

from .config import DedupConfig, DedupSettings, load_config
from .dedup import ClusteringEngine, DuplicateLedger, PairwiseDetector, fingerprint
from .models import DuplicateDecision, DuplicateUpdate, MaintenanceResult, TransactionRecord
from .store import InMemoryRecordStore, RecordStore

__version__ = "0.1.0"

__all__ = [
    "DedupConfig",
    "DedupSettings",
    "load_config",
    "ClusteringEngine",
    "DuplicateLedger",
    "PairwiseDetector",
    "fingerprint",
    "DuplicateDecision",
    "DuplicateUpdate",
    "MaintenanceResult",
    "TransactionRecord",
    "InMemoryRecordStore",
    "RecordStore",
]
