"""
Duplicate ledger: the integration surface used by the ingestion pipeline.

The ledger reads snapshots from a record store and returns decisions and
updates. Only ``run_maintenance`` writes to the store, and it does so
while holding the ledger lock.
"""

from collections import Counter, defaultdict
from datetime import datetime, time, timedelta
from threading import Event, RLock
from typing import Optional, Sequence
import logging

from ..config import DedupSettings
from ..models.transaction import (
    DuplicateDecision,
    DuplicateUpdate,
    MaintenanceResult,
    RecordId,
    TransactionRecord,
)
from ..store import RecordStore
from ..utils.exceptions import RecordNotFoundError
from .clustering import ClusteringEngine, ProgressCallback
from .detector import PairwiseDetector, resolve_root
from .fingerprint import fingerprint, same_content

logger = logging.getLogger(__name__)

UNKNOWN_SOURCE = "unknown"


class DuplicateLedger:
    """
    Applies the deduplication engine to a record store.

    Insert checks and bulk maintenance share one lock, so a bulk run holds
    exclusive control over duplicate state for its whole duration.
    """

    def __init__(self, store: RecordStore, settings: Optional[DedupSettings] = None):
        """
        Initialize the ledger.

        Args:
            store: Source of record snapshots
            settings: Engine settings (defaults when omitted)
        """
        self.store = store
        self.settings = settings or DedupSettings()
        self.detector = PairwiseDetector(self.settings)
        self.clustering = ClusteringEngine(self.settings)
        self._lock = RLock()

    def on_insert(self, record: TransactionRecord) -> DuplicateDecision:
        """
        Fingerprint and classify a newly ingested record.

        The caller persists the record, typically as ``decision.apply(record)``.
        """
        with self._lock:
            existing = self.store.get_records(*self._window(record))
            decision = self.detector.detect_duplicate(record, existing)

        if decision.is_duplicate:
            logger.info(
                f"Record {record.id} flagged as {decision.match_type.value} duplicate "
                f"of {decision.canonical_id} ({decision.confidence:.1%})"
            )
        else:
            logger.debug(f"Record {record.id} is unique: {decision.reason}")
        return decision

    def on_insert_many(self, records: Sequence[TransactionRecord]) -> list[DuplicateDecision]:
        """Classify a batch of incoming records, each against its predecessors too."""
        with self._lock:
            return self.detector.detect_many(records, self.store.get_records())

    def on_bulk_maintenance(
        self,
        existing_records: Optional[Sequence[TransactionRecord]] = None,
        cancel_event: Optional[Event] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> MaintenanceResult:
        """
        Re-cluster the record set and return the updates to apply.

        Args:
            existing_records: Snapshot to cluster; read from the store when omitted
            cancel_event: Stops the run between buckets when set
            progress: Batch progress callback

        Returns:
            Result whose ``updates`` the caller applies to its store
        """
        with self._lock:
            records = (
                list(existing_records)
                if existing_records is not None
                else self.store.get_records()
            )
            return self.clustering.cluster_and_mark(
                records, cancel_event=cancel_event, progress=progress
            )

    def run_maintenance(
        self,
        cancel_event: Optional[Event] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> MaintenanceResult:
        """
        Re-cluster the stored records and apply the updates to the store.

        Clustering and the store write happen under the ledger lock, so an
        insert check never sees duplicate state that a pending update is
        about to change.
        """
        with self._lock:
            result = self.on_bulk_maintenance(cancel_event=cancel_event, progress=progress)
            self.store.apply_updates(result.updates)
        return result

    def mark_as_duplicate(self, record_id: RecordId) -> list[DuplicateUpdate]:
        """
        Manually mark a stored record as duplicate of its earliest exact match.

        Records that pointed at ``record_id`` are re-pointed to the new root
        in the same set of updates.

        Returns:
            Updates to apply; empty when no other record has identical content
            or the record is already the root of its group

        Raises:
            RecordNotFoundError: If ``record_id`` is not in the store
        """
        with self._lock:
            record = self.store.get_record(record_id)
            if record is None:
                raise RecordNotFoundError(f"Record not found: {record_id}")

            records = self.store.get_records(*self._window(record))
            matches = [r for r in records if r.id != record.id and same_content(record, r)]
            if not matches:
                logger.info(f"Record {record_id} has no exact-content match")
                return []

            original = min(matches, key=lambda r: r.order_key)
            root = resolve_root(original, {r.id: r for r in records})
            if root == record.id:
                return []

            dependents = sorted(
                (
                    r
                    for r in self.store.get_records()
                    if r.is_duplicate and r.canonical_id == record.id
                ),
                key=lambda r: r.order_key,
            )

        updates = [DuplicateUpdate(id=record_id, is_duplicate=True, canonical_id=root)]
        updates.extend(
            DuplicateUpdate(id=r.id, is_duplicate=True, canonical_id=root) for r in dependents
        )
        logger.info(
            f"Record {record_id} marked as duplicate of {root}; "
            f"{len(dependents)} dependent records re-pointed"
        )
        return updates

    def duplicate_counts_by_source(
        self,
        records: Optional[Sequence[TransactionRecord]] = None,
    ) -> dict[str, int]:
        """
        Count exact-content duplicates per source.

        Within each source, records sharing a fingerprint count as one
        original plus ``n - 1`` duplicates. Sources without duplicates are
        omitted.
        """
        if records is None:
            records = self.store.get_records()

        by_source: dict[str, Counter] = defaultdict(Counter)
        for record in records:
            by_source[record.source or UNKNOWN_SOURCE][fingerprint(record)] += 1

        counts: dict[str, int] = {}
        for source, fingerprints in sorted(by_source.items()):
            duplicates = sum(n - 1 for n in fingerprints.values() if n > 1)
            if duplicates:
                counts[source] = duplicates
        return counts

    def _window(self, record: TransactionRecord) -> tuple[datetime, datetime]:
        days = timedelta(days=self.settings.date_window_days)
        since = datetime.combine(record.day - days, time.min)
        until = datetime.combine(record.day + days, time.max)
        return since, until
