"""
Trend Estimator — ordinary least squares slope over an indexed series.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .type_inference import parse_date, parse_number

logger = logging.getLogger(__name__)

UPWARD = "upward"
DOWNWARD = "downward"
SIDEWAYS = "sideways"
INSUFFICIENT_DATA = "insufficient-data"

# Theme confidence rules depend on this exact cut-off.
SLOPE_THRESHOLD = 0.001


@dataclass
class TrendResult:
    direction: str = INSUFFICIENT_DATA
    slope: float = 0.0
    points: int = 0
    metric: Optional[str] = None

    @property
    def label(self) -> str:
        """Display form: 'Upward', 'Downward', 'Sideways', 'Insufficient Data'."""
        return self.direction.replace("-", " ").title()

    @property
    def is_significant(self) -> bool:
        return abs(self.slope) > SLOPE_THRESHOLD

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction,
            "slope": self.slope,
            "points": self.points,
            "metric": self.metric,
        }


def classify_slope(slope: float) -> str:
    if slope > SLOPE_THRESHOLD:
        return UPWARD
    if slope < -SLOPE_THRESHOLD:
        return DOWNWARD
    return SIDEWAYS


class TrendEstimator:

    def fit(self, series: Iterable[Tuple[float, Any]], metric: Optional[str] = None) -> TrendResult:
        """
        Fit y = a + b·x on (x, y) pairs whose y parses as a number.
        Fewer than two usable points gives `insufficient-data` with slope 0.
        """
        points: List[Tuple[float, float]] = []
        for x, y in series:
            num = parse_number(y)
            if num is not None:
                points.append((float(x), num))

        n = len(points)
        if n < 2:
            return TrendResult(direction=INSUFFICIENT_DATA, slope=0.0, points=n, metric=metric)

        sum_x = sum(p[0] for p in points)
        sum_y = sum(p[1] for p in points)
        sum_xy = sum(p[0] * p[1] for p in points)
        sum_xx = sum(p[0] * p[0] for p in points)

        denominator = n * sum_xx - sum_x * sum_x
        # All x equal or sums past the float range: report flat.
        slope = 0.0 if denominator == 0 else (n * sum_xy - sum_x * sum_y) / denominator
        if not math.isfinite(slope):
            slope = 0.0

        return TrendResult(direction=classify_slope(slope), slope=slope, points=n, metric=metric)

    def fit_column(self, table: Sequence[Dict[str, Any]], column: str) -> TrendResult:
        """Trend of `column` against row position."""
        return self.fit(((i, row.get(column)) for i, row in enumerate(table)), metric=column)

    def fit_time_series(self, table: Sequence[Dict[str, Any]], date_column: str,
                        metric: str) -> TrendResult:
        """
        Trend of `metric` against chronological position: rows with a
        parseable date are ordered by it (stable for equal dates) and indexed
        0..n-1. Unparseable metric cells count as 0.
        """
        dated = []
        for row in table:
            when = parse_date(row.get(date_column))
            if when is not None:
                value = parse_number(row.get(metric))
                dated.append((when, 0.0 if value is None else value))
        dated.sort(key=lambda item: item[0])

        if len(dated) < 2:
            return TrendResult(direction=INSUFFICIENT_DATA, slope=0.0, points=len(dated), metric=metric)

        logger.debug(f"Time series on '{date_column}' → '{metric}': {len(dated)} points")
        return self.fit(((i, value) for i, (_, value) in enumerate(dated)), metric=metric)
