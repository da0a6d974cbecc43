"""
Weighted similarity scoring between two transaction records.

The overall score blends three sub-scores:

* text: normalized Levenshtein similarity of the descriptions
* amount: relative closeness of the signed amounts
* date: stepped proximity of the calendar days
"""

from decimal import Decimal
from typing import Optional

from ..config import DedupSettings, ScoringWeights
from ..models.transaction import SimilarityScore, TransactionRecord
from .fingerprint import normalize_description

SAME_DAY_SCORE = 1.0
NEXT_DAY_SCORE = 0.9
IN_WINDOW_SCORE = 0.75
OUT_OF_WINDOW_SCORE = 0.0


def levenshtein(left: str, right: str) -> int:
    """Edit distance with unit cost insertions, deletions and substitutions."""
    if left == right:
        return 0
    if not left:
        return len(right)
    if not right:
        return len(left)

    # Keep the shorter string on the inner loop
    if len(left) < len(right):
        left, right = right, left

    prev = list(range(len(right) + 1))
    for i, c1 in enumerate(left, start=1):
        curr = [i]
        for j, c2 in enumerate(right, start=1):
            cost = 0 if c1 == c2 else 1
            curr.append(min(curr[j - 1] + 1, prev[j] + 1, prev[j - 1] + cost))
        prev = curr
    return prev[-1]


def text_similarity(left: str, right: str) -> float:
    a = normalize_description(left).lower()
    b = normalize_description(right).lower()
    if a == b:
        return 1.0
    longest = max(len(a), len(b))
    return 1.0 - levenshtein(a, b) / longest


def amount_similarity(left: Decimal, right: Decimal) -> float:
    largest = max(abs(left), abs(right))
    if largest == 0:
        return 1.0
    ratio = abs(left - right) / largest
    return 1.0 - float(min(ratio, Decimal(1)))


def date_similarity(day_delta: int, date_window_days: int) -> float:
    if day_delta == 0:
        return SAME_DAY_SCORE
    if day_delta <= 1:
        return NEXT_DAY_SCORE
    if day_delta <= date_window_days:
        return IN_WINDOW_SCORE
    return OUT_OF_WINDOW_SCORE


class SimilarityScorer:
    """Computes :class:`SimilarityScore` values for record pairs."""

    def __init__(
        self,
        settings: DedupSettings,
        weights: Optional[ScoringWeights] = None,
    ):
        """
        Initialize the scorer.

        Args:
            settings: Engine settings (date window)
            weights: Sub-score weights, defaults to ``settings.weights``
        """
        self.date_window_days = settings.date_window_days
        self.weights = weights or settings.weights

    def score(self, a: TransactionRecord, b: TransactionRecord) -> SimilarityScore:
        """
        Compare two records.

        Symmetric in its arguments and free of side effects.
        """
        text = text_similarity(a.description, b.description)
        amount = amount_similarity(a.amount, b.amount)
        day_delta = abs((a.day - b.day).days)
        date = date_similarity(day_delta, self.date_window_days)

        overall = (
            self.weights.text * text
            + self.weights.amount * amount
            + self.weights.date * date
        )
        overall = min(max(overall, 0.0), 1.0)

        return SimilarityScore(overall=overall, text=text, amount=amount, date=date)
