"""Custom exceptions for the deduplication engine."""


class DedupError(Exception):
    """Base exception for deduplication errors."""

    pass


class ConfigurationError(DedupError, ValueError):
    """Error in configuration."""

    pass


class RecordLoadError(DedupError):
    """Error reading transaction records from a file."""

    pass


class DuplicateRecordIdError(DedupError):
    """Two input records share the same id within one run."""

    def __init__(self, record_ids: list) -> None:
        self.record_ids = record_ids
        preview = ", ".join(str(r) for r in record_ids[:5])
        more = f" (+{len(record_ids) - 5} more)" if len(record_ids) > 5 else ""
        super().__init__(f"Duplicate record ids in input: {preview}{more}")


class RecordNotFoundError(DedupError):
    """Requested record does not exist in the store."""

    pass


class ReportGenerationError(DedupError):
    """Error generating Excel report."""

    pass
