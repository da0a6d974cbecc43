"""
Bulk clustering of near-duplicate records into canonical groups.

Records are sorted, cut into batches, and bucketed by (day, amount band)
inside each batch. A breadth-first traversal over each bucket links records
whose similarity clears the strict threshold, or the soft threshold when they
also fall inside the date window. Every connected component with more than
one member becomes a duplicate group whose canonical member is the earliest
record (lowest id on ties).
"""

from collections import Counter, defaultdict, deque
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from threading import Event
from typing import Callable, Optional, Sequence
import logging

from ..config import DedupSettings
from ..models.transaction import (
    DuplicateGroup,
    DuplicateUpdate,
    MaintenanceResult,
    RecordId,
    TransactionRecord,
)
from ..utils.exceptions import DuplicateRecordIdError
from .candidates import CandidateSelector
from .fingerprint import fingerprint
from .scoring import SimilarityScorer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
BucketKey = tuple


class ClusteringEngine:
    """
    Groups an existing record set into duplicate clusters.

    Clustering is batch-local: two records in different batches are never
    linked. Batches are cut from the records sorted by date and id, so the
    outcome does not depend on the order the caller passes records in.
    """

    def __init__(self, settings: DedupSettings):
        """
        Initialize the clustering engine.

        Args:
            settings: Engine settings
        """
        self.settings = settings
        self.strict_threshold = settings.similarity_threshold
        self.soft_threshold = settings.soft_similarity_threshold
        self.batch_size = settings.batch_size
        self.max_workers = settings.max_workers
        self.bucket_width = Decimal(str(settings.bucket_amount_width))
        self.selector = CandidateSelector(settings)
        self.scorer = SimilarityScorer(settings)

    def bucket_key(self, record: TransactionRecord) -> BucketKey:
        """Coarse (day, amount band) key; bands are rounded half-up."""
        band = (record.amount / self.bucket_width).quantize(Decimal(1), rounding=ROUND_HALF_UP)
        return (record.day, int(band))

    def cluster_and_mark(
        self,
        records: Sequence[TransactionRecord],
        cancel_event: Optional[Event] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> MaintenanceResult:
        """
        Cluster ``records`` and compute the duplicate-state updates.

        Args:
            records: Full snapshot of existing records
            cancel_event: Checked between buckets; when set the run stops early
            progress: Called with (batches_done, total_batches) after each batch

        Returns:
            Result holding groups and the updates the caller should apply

        Raises:
            DuplicateRecordIdError: If two records share an id
        """
        start_time = datetime.now()
        result = MaintenanceResult(total_records=len(records), started_at=start_time)

        self._check_unique_ids(records)
        logger.info(
            f"Starting bulk clustering: {len(records)} records, batch size {self.batch_size}"
        )

        result.groups = self._find_groups(records, result, cancel_event, progress)
        result.updates = self._build_updates(records, result.groups)

        result.processing_time_seconds = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Bulk clustering {'cancelled' if result.cancelled else 'complete'} in "
            f"{result.processing_time_seconds:.2f}s: {len(result.groups)} groups, "
            f"{result.newly_marked} marked, {result.unmarked} cleared"
        )
        return result

    def find_groups(
        self,
        records: Sequence[TransactionRecord],
        cancel_event: Optional[Event] = None,
    ) -> list[DuplicateGroup]:
        """Return potential duplicate groups for review without computing updates."""
        self._check_unique_ids(records)
        result = MaintenanceResult(total_records=len(records))
        return self._find_groups(records, result, cancel_event, None)

    def _check_unique_ids(self, records: Sequence[TransactionRecord]) -> None:
        counts = Counter(r.id for r in records)
        repeated = sorted((rid for rid, n in counts.items() if n > 1), key=str)
        if repeated:
            logger.error(f"Refusing to cluster: {len(repeated)} record ids appear more than once")
            raise DuplicateRecordIdError(repeated)

    def _find_groups(
        self,
        records: Sequence[TransactionRecord],
        result: MaintenanceResult,
        cancel_event: Optional[Event],
        progress: Optional[ProgressCallback],
    ) -> list[DuplicateGroup]:
        ordered = sorted(records, key=lambda r: r.order_key)
        batches = [
            ordered[i : i + self.batch_size] for i in range(0, len(ordered), self.batch_size)
        ]

        groups: list[DuplicateGroup] = []
        for batch_no, batch in enumerate(batches, start=1):
            if cancel_event is not None and cancel_event.is_set():
                batch_groups, buckets_done, cancelled = [], 0, True
            else:
                batch_groups, buckets_done, cancelled = self._cluster_batch(batch, cancel_event)
            groups.extend(batch_groups)
            result.buckets_processed += buckets_done

            if cancelled:
                result.cancelled = True
                logger.warning(
                    f"Clustering cancelled during batch {batch_no}/{len(batches)}; "
                    f"keeping {len(groups)} groups from completed buckets"
                )
                break

            result.batches_processed += 1
            logger.debug(
                f"Batch {batch_no}/{len(batches)}: {len(batch)} records, "
                f"{len(batch_groups)} groups"
            )
            if progress:
                progress(batch_no, len(batches))

        return groups

    def _cluster_batch(
        self,
        batch: Sequence[TransactionRecord],
        cancel_event: Optional[Event],
    ) -> tuple[list[DuplicateGroup], int, bool]:
        buckets: dict[BucketKey, list[TransactionRecord]] = defaultdict(list)
        for record in batch:
            buckets[self.bucket_key(record)].append(record)

        # Singleton buckets cannot produce groups
        keys = sorted(k for k, members in buckets.items() if len(members) > 1)
        skipped = len(buckets) - len(keys)

        def run(key: BucketKey) -> Optional[list[DuplicateGroup]]:
            if cancel_event is not None and cancel_event.is_set():
                return None
            return self._cluster_bucket(key, buckets[key])

        if self.max_workers > 1 and len(keys) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                outcomes = list(pool.map(run, keys))
        else:
            outcomes = []
            for key in keys:
                outcome = run(key)
                outcomes.append(outcome)
                if outcome is None:
                    break

        groups: list[DuplicateGroup] = []
        done = skipped
        cancelled = False
        for outcome in outcomes:
            if outcome is None:
                cancelled = True
                continue
            groups.extend(outcome)
            done += 1

        return groups, done, cancelled

    def _cluster_bucket(
        self,
        key: BucketKey,
        members: list[TransactionRecord],
    ) -> list[DuplicateGroup]:
        """Breadth-first traversal over one bucket."""
        members = sorted(members, key=lambda r: r.order_key)
        fingerprints = {r.id: fingerprint(r) for r in members}

        visited: set[RecordId] = set()
        groups: list[DuplicateGroup] = []

        for start in members:
            if start.id in visited:
                continue

            visited.add(start.id)
            queue = deque([start])
            component: list[TransactionRecord] = []

            while queue:
                current = queue.popleft()
                component.append(current)
                for other in members:
                    if other.id in visited:
                        continue
                    if self._linked(current, other, fingerprints):
                        visited.add(other.id)
                        queue.append(other)

            if len(component) > 1:
                component.sort(key=lambda r: r.order_key)
                groups.append(
                    DuplicateGroup(
                        canonical_id=component[0].id,
                        member_ids=[r.id for r in component],
                        bucket_key=key,
                    )
                )

        return groups

    def _linked(
        self,
        a: TransactionRecord,
        b: TransactionRecord,
        fingerprints: dict[RecordId, str],
    ) -> bool:
        if fingerprints[a.id] == fingerprints[b.id]:
            return True
        score = self.scorer.score(a, b)
        if score.meets(self.strict_threshold):
            return True
        return score.meets(self.soft_threshold) and self.selector.within_date_window(a, b)

    def _build_updates(
        self,
        records: Sequence[TransactionRecord],
        groups: list[DuplicateGroup],
    ) -> list[DuplicateUpdate]:
        """
        Diff the target duplicate state against the records' current state.

        Only records whose state changes produce an update. Flagged records
        outside every group are re-pointed when their canonical became a
        duplicate, so no canonical_id ever references a duplicate.
        """
        ordered = sorted(records, key=lambda r: r.order_key)
        order = {r.id: r.order_key for r in ordered}
        current = {r.id: (r.is_duplicate, r.canonical_id) for r in ordered}
        target = dict(current)

        grouped: set[RecordId] = set()
        for group in groups:
            target[group.canonical_id] = (False, None)
            for duplicate_id in group.duplicate_ids:
                target[duplicate_id] = (True, group.canonical_id)
            grouped.update(group.member_ids)

        for record in ordered:
            if record.id in grouped:
                continue
            is_duplicate, canonical_id = target[record.id]
            if not is_duplicate or canonical_id is None:
                continue
            root = self._resolve(record.id, target, order)
            if root == record.id:
                target[record.id] = (False, None)
            elif root != canonical_id:
                target[record.id] = (True, root)

        return [
            DuplicateUpdate(id=r.id, is_duplicate=target[r.id][0], canonical_id=target[r.id][1])
            for r in ordered
            if target[r.id] != current[r.id]
        ]

    @staticmethod
    def _resolve(
        record_id: RecordId,
        target: dict[RecordId, tuple[bool, Optional[RecordId]]],
        order: dict[RecordId, tuple],
    ) -> RecordId:
        """Walk canonical links in ``target``; a cycle is broken at its lowest-ordered member."""
        path: list[RecordId] = [record_id]
        current = target[record_id][1]

        while current is not None and current in target and target[current][0]:
            if current in path:
                cycle = path[path.index(current) :]
                root = min(cycle, key=lambda rid: order[rid])
                target[root] = (False, None)
                return root
            path.append(current)
            current = target[current][1]

        return current if current is not None else record_id
