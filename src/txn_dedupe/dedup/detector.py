"""
Pairwise duplicate detection for a single incoming record.
Classifies the record as an exact match, a fuzzy match, or unique.
"""

from typing import Iterable, Mapping, Optional, Sequence
import logging

from ..config import DedupSettings
from ..models.transaction import (
    DuplicateDecision,
    MatchType,
    RecordId,
    SimilarityScore,
    TransactionRecord,
)
from .candidates import CandidateIndex, CandidateSelector
from .fingerprint import fingerprint, same_content
from .scoring import SimilarityScorer

logger = logging.getLogger(__name__)


def resolve_root(
    record: TransactionRecord,
    by_id: Mapping[RecordId, TransactionRecord],
) -> RecordId:
    """
    Follow ``canonical_id`` links from ``record`` to a record that is not a duplicate.

    Links that leave ``by_id`` stop the walk at the last known id; a cycle
    stops at the lowest-ordered record on it.
    """
    current = record
    seen: list[TransactionRecord] = []
    seen_ids: set = set()

    while current.is_duplicate and current.canonical_id is not None:
        if current.id in seen_ids:
            return min(seen, key=lambda r: r.order_key).id
        seen.append(current)
        seen_ids.add(current.id)

        target = by_id.get(current.canonical_id)
        if target is None:
            return current.canonical_id
        current = target

    return current.id


class PairwiseDetector:
    """
    Checks one incoming record against existing records.

    Exact content matches are decided first and bypass scoring; otherwise the
    best-scoring candidate is accepted when it reaches ``similarity_threshold``.
    """

    def __init__(self, settings: DedupSettings):
        """
        Initialize the detector.

        Args:
            settings: Engine settings
        """
        self.settings = settings
        self.threshold = settings.similarity_threshold
        self.selector = CandidateSelector(settings)
        self.scorer = SimilarityScorer(settings)

    def detect_duplicate(
        self,
        new_record: TransactionRecord,
        existing_records: Iterable[TransactionRecord],
    ) -> DuplicateDecision:
        """
        Decide whether ``new_record`` duplicates one of ``existing_records``.

        Args:
            new_record: Incoming record (not yet persisted)
            existing_records: Snapshot of stored records

        Returns:
            Decision pointing at the root record of the matched group
        """
        existing = list(existing_records)
        candidates = self.selector.candidates(new_record, existing)
        by_id = {r.id: r for r in existing}
        return self._decide(new_record, candidates, by_id)

    def detect_many(
        self,
        new_records: Sequence[TransactionRecord],
        existing_records: Iterable[TransactionRecord],
    ) -> list[DuplicateDecision]:
        """
        Run detection for a batch of incoming records in arrival order.

        Each record is compared against the existing snapshot plus the
        records of the batch that precede it, carrying their decisions.
        """
        existing = list(existing_records)
        by_id = {r.id: r for r in existing}
        index = CandidateIndex(existing, self.selector)

        decisions: list[DuplicateDecision] = []
        for record in new_records:
            decision = self._decide(record, index.candidates(record), by_id)
            decisions.append(decision)

            annotated = decision.apply(record)
            index.add(annotated)
            by_id[annotated.id] = annotated

        duplicates = sum(1 for d in decisions if d.is_duplicate)
        logger.info(f"Checked {len(new_records)} incoming records: {duplicates} duplicates")
        return decisions

    def _decide(
        self,
        new_record: TransactionRecord,
        candidates: list[TransactionRecord],
        by_id: Mapping[RecordId, TransactionRecord],
    ) -> DuplicateDecision:
        record_fingerprint = fingerprint(new_record)

        # Exact content wins outright
        exact = [c for c in candidates if same_content(new_record, c)]
        if exact:
            original = min(exact, key=lambda r: r.order_key)
            return self._duplicate_of(
                new_record,
                original,
                by_id,
                record_fingerprint,
                match_type=MatchType.EXACT,
                confidence=1.0,
                reason="Exact match on date, amount and description",
            )

        best: Optional[TransactionRecord] = None
        best_score: Optional[SimilarityScore] = None
        for candidate in sorted(candidates, key=lambda r: r.order_key):
            score = self.scorer.score(new_record, candidate)
            logger.debug(
                f"Score {new_record.id} vs {candidate.id}: {score.overall:.4f} "
                f"(text={score.text:.3f}, amount={score.amount:.3f}, date={score.date:.2f})"
            )
            # Strictly greater keeps the earliest candidate on ties
            if best_score is None or score.overall > best_score.overall:
                best, best_score = candidate, score

        if best is not None and best_score is not None and best_score.meets(self.threshold):
            return self._duplicate_of(
                new_record,
                best,
                by_id,
                record_fingerprint,
                match_type=MatchType.FUZZY,
                confidence=best_score.overall,
                reason=f"Similarity {best_score.overall:.1%} with record {best.id}",
                score=best_score,
            )

        best_overall = best_score.overall if best_score else 0.0
        return DuplicateDecision(
            record_id=new_record.id,
            is_duplicate=False,
            canonical_id=None,
            match_type=MatchType.UNIQUE,
            confidence=1.0 - best_overall,
            fingerprint=record_fingerprint,
            reason=(
                f"Best similarity {best_overall:.1%} below threshold {self.threshold:.0%}"
                if candidates
                else "No candidates in date/amount window"
            ),
            score=best_score,
        )

    def _duplicate_of(
        self,
        new_record: TransactionRecord,
        original: TransactionRecord,
        by_id: Mapping[RecordId, TransactionRecord],
        record_fingerprint: str,
        match_type: MatchType,
        confidence: float,
        reason: str,
        score: Optional[SimilarityScore] = None,
    ) -> DuplicateDecision:
        root_id = resolve_root(original, by_id)
        if root_id != original.id:
            logger.debug(
                f"Record {original.id} is a duplicate of {root_id}; "
                f"pointing {new_record.id} at the root"
            )
            reason = f"{reason} (re-pointed to root {root_id})"

        if root_id == new_record.id:
            # The matched group already treats the incoming record as its root
            return DuplicateDecision(
                record_id=new_record.id,
                is_duplicate=False,
                canonical_id=None,
                match_type=match_type,
                confidence=confidence,
                fingerprint=record_fingerprint,
                reason=f"Record is the canonical member of its group ({reason})",
                score=score,
            )

        return DuplicateDecision(
            record_id=new_record.id,
            is_duplicate=True,
            canonical_id=root_id,
            match_type=match_type,
            confidence=confidence,
            fingerprint=record_fingerprint,
            reason=reason,
            score=score,
        )
