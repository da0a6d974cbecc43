"""Deduplication engine components."""

from .fingerprint import fingerprint, normalize_description, same_content
from .candidates import CandidateIndex, CandidateSelector
from .scoring import SimilarityScorer, levenshtein
from .detector import PairwiseDetector, resolve_root
from .clustering import ClusteringEngine
from .ledger import DuplicateLedger
from .scheduler import MaintenanceScheduler

__all__ = [
    "fingerprint",
    "normalize_description",
    "same_content",
    "CandidateIndex",
    "CandidateSelector",
    "SimilarityScorer",
    "levenshtein",
    "PairwiseDetector",
    "resolve_root",
    "ClusteringEngine",
    "DuplicateLedger",
    "MaintenanceScheduler",
]
