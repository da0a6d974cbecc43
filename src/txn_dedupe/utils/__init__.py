"""Utility modules."""

from .exceptions import (
    DedupError,
    ConfigurationError,
    RecordLoadError,
    DuplicateRecordIdError,
    RecordNotFoundError,
    ReportGenerationError,
)
from .logging_config import setup_logging

__all__ = [
    "DedupError",
    "ConfigurationError",
    "RecordLoadError",
    "DuplicateRecordIdError",
    "RecordNotFoundError",
    "ReportGenerationError",
    "setup_logging",
]
