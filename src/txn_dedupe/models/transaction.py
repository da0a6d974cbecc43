"""Data models for transaction records and deduplication results."""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Union

RecordId = Union[int, str]

EPOCH = datetime(1970, 1, 1)


def record_order_key(record_id: RecordId) -> tuple:
    """
    Sort key for record ids.

    Integer ids sort numerically and before string ids, so "lowest id"
    tie-breaks stay deterministic when a store mixes both.
    """
    if isinstance(record_id, int) and not isinstance(record_id, bool):
        return (0, record_id, "")
    return (1, 0, str(record_id))


def _coerce_amount(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal("0")
    try:
        # str() first so 0.1 stays 0.1 rather than its binary expansion
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return amount if amount.is_finite() else Decimal("0")


def _coerce_date(value: Any) -> datetime:
    if value is None:
        return EPOCH
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return EPOCH


class MatchType(Enum):
    """How a record was classified by the pairwise detector."""

    EXACT = "exact"
    FUZZY = "fuzzy"
    UNIQUE = "unique"


@dataclass
class TransactionRecord:
    """
    A single financial transaction as handed over by the ingestion layer.

    Construction never fails on partially populated rows: missing or
    malformed fields are replaced by safe defaults (empty description, zero
    amount, epoch date) so one bad import row cannot sink a whole batch.
    """

    # Stable external id supplied by the caller
    id: RecordId

    # Occurrence date-time (naive UTC)
    date: datetime

    # Signed amount: positive = inflow, negative = outflow
    amount: Decimal

    description: str = ""

    # Ingestion source label (bank export, API pull, ...)
    source: str = ""

    # Content hash, assigned by the engine
    fingerprint: Optional[str] = None

    # Duplicate state, assigned by the engine
    is_duplicate: bool = False
    canonical_id: Optional[RecordId] = None

    # Original raw data for audit trail
    raw_data: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Substitute defaults for missing or malformed fields."""
        self.date = _coerce_date(self.date)
        self.amount = _coerce_amount(self.amount)
        self.description = "" if self.description is None else str(self.description)
        self.source = "" if self.source is None else str(self.source)
        if not self.is_duplicate:
            self.canonical_id = None

    @property
    def day(self) -> date:
        """Calendar day of the occurrence."""
        return self.date.date()

    @property
    def order_key(self) -> tuple:
        """Canonical ordering: earliest date first, then lowest id."""
        return (self.date, record_order_key(self.id))


@dataclass(frozen=True)
class SimilarityScore:
    """Result of comparing two records. Never persisted."""

    overall: float
    text: float
    amount: float
    date: float

    def meets(self, threshold: float) -> bool:
        return self.overall >= threshold


@dataclass(frozen=True)
class DuplicateDecision:
    """Outcome of checking one incoming record against existing records."""

    record_id: RecordId
    is_duplicate: bool
    canonical_id: Optional[RecordId]
    match_type: MatchType
    confidence: float
    fingerprint: str
    reason: str = ""
    score: Optional[SimilarityScore] = None

    def apply(self, record: TransactionRecord) -> TransactionRecord:
        """Return a copy of ``record`` carrying this decision's state."""
        return replace(
            record,
            fingerprint=self.fingerprint,
            is_duplicate=self.is_duplicate,
            canonical_id=self.canonical_id if self.is_duplicate else None,
        )


@dataclass(frozen=True)
class DuplicateUpdate:
    """A single duplicate-state change the caller applies to its store."""

    id: RecordId
    is_duplicate: bool
    canonical_id: Optional[RecordId] = None


@dataclass
class DuplicateGroup:
    """Cluster of records believed to represent the same economic event."""

    canonical_id: RecordId
    member_ids: list[RecordId]
    bucket_key: Optional[tuple] = None

    @property
    def duplicate_ids(self) -> list[RecordId]:
        return [m for m in self.member_ids if m != self.canonical_id]

    @property
    def size(self) -> int:
        return len(self.member_ids)


@dataclass
class MaintenanceResult:
    """Summary of a bulk clustering run."""

    updates: list[DuplicateUpdate] = field(default_factory=list)
    groups: list[DuplicateGroup] = field(default_factory=list)
    total_records: int = 0
    batches_processed: int = 0
    buckets_processed: int = 0
    cancelled: bool = False
    processing_time_seconds: float = 0.0
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def newly_marked(self) -> int:
        """Records flagged as duplicate (or re-pointed) by this run."""
        return sum(1 for u in self.updates if u.is_duplicate)

    @property
    def unmarked(self) -> int:
        """Records whose duplicate flag was cleared by this run."""
        return sum(1 for u in self.updates if not u.is_duplicate)

    @property
    def duplicate_count(self) -> int:
        return sum(len(g.duplicate_ids) for g in self.groups)
