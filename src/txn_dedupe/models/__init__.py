"""Data models for deduplication."""

from .transaction import (
    TransactionRecord,
    RecordId,
    MatchType,
    SimilarityScore,
    DuplicateDecision,
    DuplicateUpdate,
    DuplicateGroup,
    MaintenanceResult,
    record_order_key,
)

__all__ = [
    "TransactionRecord",
    "RecordId",
    "MatchType",
    "SimilarityScore",
    "DuplicateDecision",
    "DuplicateUpdate",
    "DuplicateGroup",
    "MaintenanceResult",
    "record_order_key",
]
