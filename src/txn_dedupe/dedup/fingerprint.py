"""Content fingerprints used as fast exact-duplicate keys."""

from datetime import datetime
from decimal import Decimal
import hashlib

from ..models.transaction import TransactionRecord


def normalize_description(description: str) -> str:
    """Trim surrounding whitespace; ``None`` becomes an empty string."""
    return (description or "").strip()


def canonical_date(value: datetime) -> str:
    """Round-trip ISO-8601 form of a (naive UTC) datetime."""
    return value.isoformat(timespec="microseconds")


def canonical_amount(value: Decimal) -> str:
    """
    Exact decimal text of an amount, independent of trailing zeros.

    ``Decimal("100")``, ``Decimal("100.0")`` and ``Decimal("100.00")`` all
    render as ``100``; ``-0`` renders as ``0``.
    """
    if value.is_zero():
        return "0"
    return format(value.normalize(), "f")


def fingerprint_payload(record: TransactionRecord) -> str:
    return "|".join(
        (
            canonical_date(record.date),
            canonical_amount(record.amount),
            normalize_description(record.description),
        )
    )


def fingerprint(record: TransactionRecord) -> str:
    """
    SHA-256 hex digest over date, amount and trimmed description.

    Source and id are not part of the payload.
    """
    payload = fingerprint_payload(record)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def same_content(left: TransactionRecord, right: TransactionRecord) -> bool:
    """Exact content match: same date, same amount, same trimmed description."""
    return (
        left.date == right.date
        and left.amount == right.amount
        and normalize_description(left.description) == normalize_description(right.description)
    )
