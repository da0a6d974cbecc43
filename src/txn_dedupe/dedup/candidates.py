"""
Candidate selection for duplicate detection.
Narrows a record set to the bounded date/amount window around one record.
"""

from bisect import bisect_left, bisect_right
from decimal import Decimal
from typing import Iterable, Sequence
import logging

from ..config import DedupSettings
from ..models.transaction import TransactionRecord

logger = logging.getLogger(__name__)


class CandidateSelector:
    """
    Filters records down to plausible duplicates of a given record.

    A record is a candidate when it falls within ``date_window_days``
    calendar days and its amount differs by no more than
    ``max(amount_tolerance, |amount| * amount_tolerance_percent)``.
    """

    def __init__(self, settings: DedupSettings):
        self.date_window_days = settings.date_window_days
        self.amount_tolerance = Decimal(str(settings.amount_tolerance))
        self.amount_tolerance_percent = Decimal(str(settings.amount_tolerance_percent))

    def amount_slack(self, record: TransactionRecord) -> Decimal:
        """Largest amount difference still considered a candidate."""
        return max(self.amount_tolerance, abs(record.amount) * self.amount_tolerance_percent)

    def day_delta(self, left: TransactionRecord, right: TransactionRecord) -> int:
        return abs((left.day - right.day).days)

    def within_date_window(self, left: TransactionRecord, right: TransactionRecord) -> bool:
        return self.day_delta(left, right) <= self.date_window_days

    def is_candidate(self, record: TransactionRecord, other: TransactionRecord) -> bool:
        if other.id == record.id:
            return False
        if not self.within_date_window(record, other):
            return False
        return abs(record.amount - other.amount) <= self.amount_slack(record)

    def candidates(
        self,
        record: TransactionRecord,
        all_records: Iterable[TransactionRecord],
    ) -> list[TransactionRecord]:
        """
        Return the records in ``all_records`` that are candidates for ``record``.

        Args:
            record: Record being checked
            all_records: Records to search (may include ``record`` itself)

        Returns:
            Candidates in input order, never including ``record``'s own id
        """
        return [other for other in all_records if self.is_candidate(record, other)]


class CandidateIndex:
    """
    Date-sorted snapshot for repeated candidate lookups.

    Lookups binary-search the date window first, so only records within
    ``date_window_days`` are checked against the amount tolerance.
    """

    def __init__(self, records: Sequence[TransactionRecord], selector: CandidateSelector):
        self.selector = selector
        self._records = sorted(records, key=lambda r: r.order_key)
        self._ordinals = [r.day.toordinal() for r in self._records]
        logger.debug(f"Built candidate index over {len(self._records)} records")

    def __len__(self) -> int:
        return len(self._records)

    def add(self, record: TransactionRecord) -> None:
        """Insert a record, keeping the index sorted by day."""
        day = record.day.toordinal()
        pos = bisect_right(self._ordinals, day)
        self._ordinals.insert(pos, day)
        self._records.insert(pos, record)

    def candidates(self, record: TransactionRecord) -> list[TransactionRecord]:
        day = record.day.toordinal()
        window = self.selector.date_window_days
        lo = bisect_left(self._ordinals, day - window)
        hi = bisect_right(self._ordinals, day + window)
        return [
            other
            for other in self._records[lo:hi]
            if self.selector.is_candidate(record, other)
        ]
