"""
Correlation Engine — Pairwise Pearson Correlation Discovery
============================================================
Scores every unordered pair of numeric columns, drops pairs under a noise
floor and ranks the rest by absolute coefficient.

Two call sites use different floors: the exploratory pass keeps |r| > 0.1,
the "significant correlations" section keeps |r| > 0.3. The floor is a
constructor argument, never a constant.
"""

import math
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .type_inference import parse_number

logger = logging.getLogger(__name__)

EXPLORATORY_THRESHOLD = 0.1
SIGNIFICANT_THRESHOLD = 0.3
MIN_PAIRS = 2


@dataclass
class CorrelationRecord:
    column_a: str
    column_b: str
    coefficient: float
    strength: str
    direction: str
    pairs: int = 0
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "column_a": self.column_a,
            "column_b": self.column_b,
            "coefficient": self.coefficient,
            "strength": self.strength,
            "direction": self.direction,
            "pairs": self.pairs,
            "description": self.description,
        }


def correlation_strength(coefficient: float) -> str:
    r = abs(coefficient)
    if r >= 0.8:
        return "Very Strong"
    if r >= 0.6:
        return "Strong"
    if r >= 0.4:
        return "Moderate"
    if r >= 0.2:
        return "Weak"
    return "Very Weak"


def describe_correlation(col_a: str, col_b: str, coefficient: float) -> str:
    positive = coefficient > 0
    direction = "positive" if positive else "negative"
    strength = correlation_strength(coefficient).lower()
    return (
        f"{col_a} and {col_b} show a {strength} {direction} correlation ({coefficient:.3f}). "
        f"This means that as {col_a} {'increases' if positive else 'decreases'}, "
        f"{col_b} tends to {'increase' if positive else 'decrease'} as well."
    )


def pearson(xs: Sequence[float], ys: Sequence[float]) -> Optional[float]:
    """
    Pearson r from raw sums. None when fewer than two pairs or when either
    series has zero variance.
    """
    n = len(xs)
    if n < MIN_PAIRS or n != len(ys):
        return None

    # r is scale invariant; unit-scaled inputs keep the raw sums in range.
    x_scale = max(abs(x) for x in xs)
    y_scale = max(abs(y) for y in ys)
    if x_scale == 0 or y_scale == 0:
        return None
    xs = [x / x_scale for x in xs]
    ys = [y / y_scale for y in ys]

    sum_x = sum(xs)
    sum_y = sum(ys)
    sum_xy = sum(x * y for x, y in zip(xs, ys))
    sum_xx = sum(x * x for x in xs)
    sum_yy = sum(y * y for y in ys)

    numerator = n * sum_xy - sum_x * sum_y
    var_term = (n * sum_xx - sum_x * sum_x) * (n * sum_yy - sum_y * sum_y)
    if not (math.isfinite(numerator) and math.isfinite(var_term)) or var_term <= 0:
        return None
    r = numerator / math.sqrt(var_term)
    # Rounding in the raw-sum form can push |r| a hair past 1.
    return max(-1.0, min(1.0, r))


class CorrelationEngine:
    """
    Args:
        threshold: pairs with |r| <= threshold are dropped.
    """

    def __init__(self, threshold: float = EXPLORATORY_THRESHOLD):
        self.threshold = threshold

    def correlate(self, table: Sequence[Dict[str, Any]], col_a: str, col_b: str) -> Optional[CorrelationRecord]:
        """Record for one pair regardless of the threshold, or None if undefined."""
        xs, ys = [], []
        for row in table:
            x = parse_number(row.get(col_a))
            y = parse_number(row.get(col_b))
            if x is not None and y is not None:
                xs.append(x)
                ys.append(y)

        r = pearson(xs, ys)
        if r is None:
            return None
        return CorrelationRecord(
            column_a=col_a,
            column_b=col_b,
            coefficient=r,
            strength=correlation_strength(r),
            direction="positive" if r > 0 else "negative",
            pairs=len(xs),
            description=describe_correlation(col_a, col_b, r),
        )

    def compute(self, table: Sequence[Dict[str, Any]],
                numeric_columns: Sequence[str]) -> List[CorrelationRecord]:
        """All pairs above the floor, strongest first; ties keep pair order."""
        records: List[CorrelationRecord] = []
        cols = list(numeric_columns)
        for i in range(len(cols)):
            for j in range(i + 1, len(cols)):
                record = self.correlate(table, cols[i], cols[j])
                if record is not None and abs(record.coefficient) > self.threshold:
                    records.append(record)

        records.sort(key=lambda rec: abs(rec.coefficient), reverse=True)
        logger.debug(
            f"Correlations: {len(records)} pair(s) above |r| > {self.threshold} "
            f"from {len(cols)} numeric column(s)"
        )
        return records
