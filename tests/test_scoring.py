from decimal import Decimal

import pytest

from conftest import make_record
from txn_dedupe.config import DedupSettings, ScoringWeights
from txn_dedupe.dedup.scoring import (
    SimilarityScorer,
    amount_similarity,
    date_similarity,
    levenshtein,
    text_similarity,
)


def test_levenshtein_distances() -> None:
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert levenshtein("abc", "") == 3
    assert levenshtein("same", "same") == 0
    assert levenshtein("flaw", "lawn") == levenshtein("lawn", "flaw") == 2


def test_text_similarity_rules() -> None:
    assert text_similarity("Coffee Shop", "coffee shop") == 1.0
    assert text_similarity("", "") == 1.0
    assert text_similarity("", "abc") == 0.0
    assert text_similarity("abcd", "abce") == pytest.approx(0.75)


def test_amount_similarity_rules() -> None:
    assert amount_similarity(Decimal("0"), Decimal("0")) == 1.0
    assert amount_similarity(Decimal("-50"), Decimal("-50")) == 1.0
    assert amount_similarity(Decimal("100"), Decimal("0")) == 0.0
    # opposite signs are capped at zero similarity
    assert amount_similarity(Decimal("100"), Decimal("-100")) == 0.0
    assert amount_similarity(Decimal("-100"), Decimal("-101")) == pytest.approx(1 - 1 / 101)


def test_date_similarity_steps() -> None:
    assert date_similarity(0, 2) == 1.0
    assert date_similarity(1, 2) == 0.9
    assert date_similarity(2, 2) == 0.75
    assert date_similarity(3, 2) == 0.0
    assert date_similarity(1, 0) == 0.9


def test_rounded_amount_coffee_regression(settings: DedupSettings) -> None:
    scorer = SimilarityScorer(settings)
    first = make_record(1, amount="-100.00", description="Coffee shop")
    second = make_record(2, amount="-101.00", description="Coffee shop")

    score = scorer.score(first, second)

    assert score.text == 1.0
    assert score.amount == pytest.approx(0.990099, abs=1e-6)
    assert score.date == 1.0
    assert score.overall == pytest.approx(0.997525, abs=1e-6)
    assert score.meets(settings.similarity_threshold)


def test_date_subscore_uses_calendar_days(settings: DedupSettings) -> None:
    scorer = SimilarityScorer(settings)
    late = make_record(1, when="2024-01-10T23:59:00")
    early_next = make_record(2, when="2024-01-11T00:01:00")
    two_days = make_record(3, when="2024-01-12T12:00:00")
    far = make_record(4, when="2024-01-20T12:00:00")

    assert scorer.score(late, early_next).date == 0.9
    assert scorer.score(late, two_days).date == 0.75
    assert scorer.score(late, far).date == 0.0


def test_score_is_symmetric(settings: DedupSettings) -> None:
    scorer = SimilarityScorer(settings)
    records = [
        make_record(1, when="2024-01-10T09:00:00", amount="-100.00", description="Coffee shop"),
        make_record(2, when="2024-01-11T10:30:00", amount="-99.40", description="COFFEE SHOP #12"),
        make_record(3, when="2024-01-12T08:00:00", amount="250.00", description="Salary"),
        make_record(4, when="2024-01-10T09:00:00", amount="0", description=""),
    ]

    for a in records:
        for b in records:
            assert scorer.score(a, b) == scorer.score(b, a)


def test_identical_records_score_one(settings: DedupSettings) -> None:
    scorer = SimilarityScorer(settings)
    record = make_record(1)
    assert scorer.score(record, make_record(2)).overall == pytest.approx(1.0)


def test_custom_weights_change_overall(settings: DedupSettings) -> None:
    text_only = SimilarityScorer(settings, weights=ScoringWeights(text=1.0, amount=0.0, date=0.0))
    a = make_record(1, description="abcd")
    b = make_record(2, amount="-500.00", description="abce")

    assert text_only.score(a, b).overall == pytest.approx(0.75)
