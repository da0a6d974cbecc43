"""Record loaders."""

from .csv_loader import CsvRecordLoader

__all__ = ["CsvRecordLoader"]
