from decimal import Decimal

from conftest import make_record
from txn_dedupe.config import DedupSettings
from txn_dedupe.dedup.candidates import CandidateIndex, CandidateSelector


def test_record_never_selects_itself(settings: DedupSettings) -> None:
    selector = CandidateSelector(settings)
    record = make_record(1)

    assert selector.candidates(record, [record, make_record(1)]) == []


def test_date_window_is_inclusive(settings: DedupSettings) -> None:
    selector = CandidateSelector(settings)
    record = make_record(1, when="2024-01-10T09:00:00")
    pool = [
        make_record(2, when="2024-01-08T00:00:00"),
        make_record(3, when="2024-01-12T23:59:00"),
        make_record(4, when="2024-01-07T23:59:00"),
        make_record(5, when="2024-01-13T00:00:00"),
    ]

    assert [c.id for c in selector.candidates(record, pool)] == [2, 3]


def test_fixed_amount_tolerance_for_small_amounts(settings: DedupSettings) -> None:
    selector = CandidateSelector(settings)
    record = make_record(1, amount="-10.00")
    pool = [
        make_record(2, amount="-11.50"),
        make_record(3, amount="-11.51"),
        make_record(4, amount="-8.50"),
    ]

    assert selector.amount_slack(record) == Decimal("1.5")
    assert [c.id for c in selector.candidates(record, pool)] == [2, 4]


def test_relative_amount_tolerance_for_large_amounts(settings: DedupSettings) -> None:
    selector = CandidateSelector(settings)
    record = make_record(1, amount="-1000.00")
    pool = [
        make_record(2, amount="-1050.00"),
        make_record(3, amount="-1050.01"),
        make_record(4, amount="-960.00"),
    ]

    assert selector.amount_slack(record) == Decimal("50")
    assert [c.id for c in selector.candidates(record, pool)] == [2, 4]


def test_custom_window_settings() -> None:
    selector = CandidateSelector(
        DedupSettings(date_window_days=0, amount_tolerance=0, amount_tolerance_percent=0)
    )
    record = make_record(1)
    pool = [
        make_record(2),
        make_record(3, when="2024-01-11T09:00:00"),
        make_record(4, amount="-100.01"),
    ]

    assert [c.id for c in selector.candidates(record, pool)] == [2]


def test_index_matches_linear_selection(settings: DedupSettings) -> None:
    selector = CandidateSelector(settings)
    pool = [
        make_record(i, when=f"2024-01-{day:02d}T12:00:00", amount=f"-{100 + i}.00")
        for i, day in enumerate([3, 9, 10, 10, 11, 12, 13, 20], start=1)
    ]
    index = CandidateIndex(pool, selector)
    probe = make_record(99, when="2024-01-10T08:00:00", amount="-104.00")

    expected = {c.id for c in selector.candidates(probe, pool)}
    assert {c.id for c in index.candidates(probe)} == expected
    assert expected == {2, 3, 4, 5, 6}

    index.add(make_record(100, when="2024-01-09T00:00:00", amount="-104.50"))
    assert 100 in {c.id for c in index.candidates(probe)}
    assert len(index) == len(pool) + 1
