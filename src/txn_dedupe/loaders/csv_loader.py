"""
CSV record loader.
Reads exported transaction files into TransactionRecord objects.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional
import logging

import pandas as pd

from ..config import DedupConfig
from ..models.transaction import RecordId, TransactionRecord
from ..utils.exceptions import RecordLoadError

logger = logging.getLogger(__name__)

TRUE_VALUES = {"true", "1", "yes", "y", "t"}


class CsvRecordLoader:
    """
    Loader for flat CSV exports.

    Column names come from ``config.input.column_mappings``. Rows with
    missing or malformed values are kept with safe defaults and a warning.
    """

    def __init__(self, config: DedupConfig):
        """
        Initialize the loader with configuration.

        Args:
            config: Application configuration object
        """
        self.config = config
        self.input_config = config.input
        self.column_mappings = config.input.column_mappings

    def load_file(self, file_path: Path) -> list[TransactionRecord]:
        """
        Load a CSV file and return transaction records.

        Args:
            file_path: Path to the CSV file

        Returns:
            List of transaction records

        Raises:
            RecordLoadError: If the file cannot be read
        """
        logger.info(f"Loading records from CSV file: {file_path}")

        try:
            df = pd.read_csv(
                file_path,
                encoding=self.input_config.encoding,
                delimiter=self.input_config.delimiter,
                dtype=str,
                keep_default_na=False,
            )
        except Exception as e:
            logger.error(f"Failed to read CSV file: {e}")
            raise RecordLoadError(f"Failed to read CSV file: {e}") from e

        records = self.load_dataframe(df)
        logger.info(f"Loaded {len(records)} records from {file_path.name}")
        return records

    def load_dataframe(self, df: pd.DataFrame) -> list[TransactionRecord]:
        """Convert every DataFrame row to a record."""
        records: list[TransactionRecord] = []
        for idx, row in df.iterrows():
            records.append(self._normalize_row(row, int(idx)))
        return records

    def _normalize_row(self, row: pd.Series, idx: int) -> TransactionRecord:
        """
        Convert a DataFrame row to a TransactionRecord.

        Args:
            row: Pandas Series representing a row
            idx: Row index

        Returns:
            Transaction record with defaults substituted for bad fields
        """
        record_id = self._parse_id(self._value(row, "id"))
        if record_id is None:
            record_id = f"row-{idx}"
            logger.warning(f"Row {idx}: missing id, using {record_id}")

        raw_date = self._value(row, "date")
        txn_date = self._parse_date(raw_date)
        if txn_date is None:
            logger.warning(f"Row {idx}: invalid date {raw_date!r}, using epoch")

        raw_amount = self._value(row, "amount")
        amount = self._parse_amount(raw_amount)
        if amount is None:
            logger.warning(f"Row {idx}: invalid amount {raw_amount!r}, using 0")

        is_duplicate = self._parse_bool(self._value(row, "is_duplicate"))
        canonical_id = self._parse_id(self._value(row, "canonical_id")) if is_duplicate else None

        return TransactionRecord(
            id=record_id,
            date=txn_date,
            amount=amount,
            description=self._value(row, "description") or "",
            source=self._value(row, "source") or "",
            is_duplicate=is_duplicate,
            canonical_id=canonical_id,
            raw_data={str(k): v for k, v in row.to_dict().items()},
        )

    def _value(self, row: pd.Series, field: str) -> Optional[str]:
        column = self.column_mappings.get(field, field)
        if column not in row.index:
            return None
        value = row[column]
        if value is None or (isinstance(value, float) and pd.isna(value)):
            return None
        text = str(value).strip()
        return text or None

    def _parse_id(self, value: Optional[str]) -> Optional[RecordId]:
        """Numeric ids become ints so they order numerically."""
        if value is None:
            return None
        return int(value) if value.isdigit() else value

    def _parse_date(self, value: Optional[str]) -> Optional[datetime]:
        if value is None:
            return None

        date_format = self.input_config.date_format
        if date_format:
            try:
                return datetime.strptime(value, date_format)
            except ValueError:
                pass

        parsed = pd.to_datetime(value, errors="coerce")
        if pd.isna(parsed):
            return None
        return parsed.to_pydatetime()

    def _parse_amount(self, value: Optional[str]) -> Optional[Decimal]:
        if value is None:
            return None

        text = value.replace(",", "").replace("$", "").strip()
        # Accounting negatives: (12.34)
        if text.startswith("(") and text.endswith(")"):
            text = "-" + text[1:-1]

        try:
            amount = Decimal(text)
        except InvalidOperation:
            return None
        return amount if amount.is_finite() else None

    def _parse_bool(self, value: Any) -> bool:
        if value is None:
            return False
        return str(value).strip().lower() in TRUE_VALUES
