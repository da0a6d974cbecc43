"""
Record store contract consumed by the deduplication ledger, plus an
in-memory implementation with a bounded query cache.
"""

from collections import OrderedDict
from dataclasses import replace
from datetime import datetime
from threading import RLock
from typing import Generic, Hashable, Iterable, Optional, Protocol, Sequence, TypeVar
import logging

from .models.transaction import DuplicateUpdate, RecordId, TransactionRecord
from .utils.exceptions import RecordNotFoundError

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class RecordStore(Protocol):
    """Narrow read/write contract the engine needs from persistent storage."""

    def get_records(
        self,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> list[TransactionRecord]:
        ...

    def get_record(self, record_id: RecordId) -> Optional[TransactionRecord]:
        ...

    def apply_updates(self, updates: Sequence[DuplicateUpdate]) -> int:
        ...


class LruCache(Generic[K, V]):
    """Bounded least-recently-used cache with explicit invalidation."""

    def __init__(self, capacity: int = 512):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._data: "OrderedDict[K, V]" = OrderedDict()
        self._lock = RLock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: K) -> bool:
        return key in self._data

    def get(self, key: K) -> Optional[V]:
        with self._lock:
            if key not in self._data:
                self.misses += 1
                return None
            self._data.move_to_end(key)
            self.hits += 1
            return self._data[key]

    def put(self, key: K, value: V) -> None:
        with self._lock:
            if key in self._data:
                self._data.move_to_end(key)
            self._data[key] = value
            while len(self._data) > self.capacity:
                evicted, _ = self._data.popitem(last=False)
                logger.debug(f"Evicted cache entry: {evicted}")

    def invalidate(self, key: Optional[K] = None) -> None:
        """Drop one entry, or everything when ``key`` is None."""
        with self._lock:
            if key is None:
                self._data.clear()
            else:
                self._data.pop(key, None)


class InMemoryRecordStore:
    """
    Dictionary-backed :class:`RecordStore`.

    Date-range queries are cached in an :class:`LruCache` keyed by the query
    bounds; every mutation invalidates the whole cache.
    """

    def __init__(
        self,
        records: Iterable[TransactionRecord] = (),
        cache_capacity: int = 64,
    ):
        self._records: dict[RecordId, TransactionRecord] = {}
        self._lock = RLock()
        self.cache: LruCache[tuple, list[TransactionRecord]] = LruCache(cache_capacity)
        for record in records:
            self.add(record)

    def __len__(self) -> int:
        return len(self._records)

    def add(self, record: TransactionRecord) -> None:
        """Insert or replace a record (last write wins)."""
        with self._lock:
            if record.id in self._records:
                logger.warning(f"Replacing existing record {record.id}")
            self._records[record.id] = record
            self.cache.invalidate()

    def get_record(self, record_id: RecordId) -> Optional[TransactionRecord]:
        return self._records.get(record_id)

    def get_records(
        self,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> list[TransactionRecord]:
        """Records with ``since <= date <= until``; bounds are optional."""
        key = (since, until)
        with self._lock:
            cached = self.cache.get(key)
            if cached is not None:
                return list(cached)

            records = [
                r
                for r in self._records.values()
                if (since is None or r.date >= since) and (until is None or r.date <= until)
            ]
            self.cache.put(key, records)
            return list(records)

    def apply_updates(self, updates: Sequence[DuplicateUpdate]) -> int:
        """
        Apply duplicate-state updates.

        Returns:
            Number of records changed

        Raises:
            RecordNotFoundError: If an update references an unknown record
        """
        with self._lock:
            missing = [u.id for u in updates if u.id not in self._records]
            if missing:
                raise RecordNotFoundError(f"Unknown record ids in updates: {missing}")

            for update in updates:
                self._records[update.id] = replace(
                    self._records[update.id],
                    is_duplicate=update.is_duplicate,
                    canonical_id=update.canonical_id if update.is_duplicate else None,
                )
            if updates:
                self.cache.invalidate()
            return len(updates)
