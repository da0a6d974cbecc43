from datetime import datetime, timedelta, timezone
from decimal import Decimal

from conftest import make_record
from txn_dedupe.dedup.fingerprint import (
    canonical_amount,
    fingerprint,
    fingerprint_payload,
    same_content,
)
from txn_dedupe.models import TransactionRecord


def test_identical_content_hashes_identically_across_sources_and_ids() -> None:
    first = make_record(1, source="monobank-api")
    second = make_record("csv-77", source="privat-export")

    assert fingerprint(first) == fingerprint(second)
    assert len(fingerprint(first)) == 64
    int(fingerprint(first), 16)


def test_amount_scale_does_not_change_fingerprint() -> None:
    assert fingerprint(make_record(1, amount="100")) == fingerprint(make_record(2, amount="100.00"))
    assert canonical_amount(Decimal("-0.00")) == "0"
    assert canonical_amount(Decimal("1E+2")) == "100"
    assert canonical_amount(Decimal("-12.50")) == "-12.5"


def test_description_is_trimmed_but_case_sensitive() -> None:
    base = make_record(1, description="Coffee shop")
    padded = make_record(2, description="  Coffee shop \t")
    shouted = make_record(3, description="COFFEE SHOP")

    assert fingerprint(base) == fingerprint(padded)
    assert same_content(base, padded)
    assert fingerprint(base) != fingerprint(shouted)


def test_timezone_aware_dates_hash_as_utc() -> None:
    kyiv = timezone(timedelta(hours=2))
    aware = make_record(1, when=datetime(2024, 1, 10, 11, 0, tzinfo=kyiv))
    naive_utc = make_record(2, when=datetime(2024, 1, 10, 9, 0))

    assert aware.date == naive_utc.date
    assert fingerprint(aware) == fingerprint(naive_utc)


def test_different_time_of_day_changes_fingerprint() -> None:
    morning = make_record(1, when="2024-01-10T09:00:00")
    evening = make_record(2, when="2024-01-10T21:00:00")

    assert fingerprint(morning) != fingerprint(evening)
    assert not same_content(morning, evening)


def test_missing_fields_fall_back_to_defaults() -> None:
    blank = TransactionRecord(id=1, date=None, amount=None, description=None)
    explicit = TransactionRecord(id=2, date=datetime(1970, 1, 1), amount=Decimal("0"), description="")

    assert fingerprint_payload(blank) == "1970-01-01T00:00:00.000000|0|"
    assert fingerprint(blank) == fingerprint(explicit)


def test_garbage_amount_is_treated_as_zero() -> None:
    record = TransactionRecord(id=1, date=datetime(2024, 1, 1), amount="twelve")
    assert record.amount == Decimal("0")

    as_float = TransactionRecord(id=2, date=datetime(2024, 1, 1), amount=0.1)
    assert as_float.amount == Decimal("0.1")
