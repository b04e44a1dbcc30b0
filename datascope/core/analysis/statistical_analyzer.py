"""
Statistical Analyzer — Descriptive Statistics Engine
=====================================================
Computes per-column descriptive statistics from raw table cells.
Unparseable cells are dropped at the point of use; nothing here raises on
bad values or produces NaN.

Capabilities:
  1. Descriptive Stats     — mean, median, population std, skewness, min/max
  2. Quartiles             — nearest-rank Q1/Q3 at floor(0.25n) / floor(0.75n)
  3. Outlier Detection     — Tukey fences at 1.5 × IQR (strict)
  4. Data Quality          — per-column completeness and distinct counts
  5. Segment Aggregation   — group-by on a categorical column, sum/avg/count
"""

import math
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence
from dataclasses import dataclass, field, asdict

from .type_inference import is_missing, parse_number

logger = logging.getLogger(__name__)

OUTLIER_IQR_FACTOR = 1.5


def _finite(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


# ═══════════════════════════════════════════════════════════════
# DATA CLASSES
# ═══════════════════════════════════════════════════════════════

@dataclass
class DescriptiveStats:
    """
    Summary of one numeric column. All fields None when no value parsed;
    a moment that overflows the float range is None as well.
    """
    count: int = 0
    mean: Optional[float] = None
    median: Optional[float] = None
    std: Optional[float] = None
    skewness: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    q1: Optional[float] = None
    q3: Optional[float] = None

    @property
    def defined(self) -> bool:
        return self.count > 0

    @property
    def iqr(self) -> Optional[float]:
        if not self.defined:
            return None
        return self.q3 - self.q1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DataQuality:
    """Completeness (% non-empty, 1 decimal) and distinct counts per column."""
    completeness: Dict[str, float] = field(default_factory=dict)
    uniqueness: Dict[str, int] = field(default_factory=dict)
    overall: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completeness": dict(self.completeness),
            "uniqueness": dict(self.uniqueness),
            "overall": self.overall,
        }


class StatisticalAnalyzer:
    """
    Pure functions over raw cell values — no state between calls.
    """

    # ──────────────────────────────────────────────────────────
    # 1. PARSING
    # ──────────────────────────────────────────────────────────

    @staticmethod
    def numeric_values(values: Iterable[Any]) -> List[float]:
        """Finite floats in input order; everything else is dropped."""
        out = []
        for v in values:
            num = parse_number(v)
            if num is not None:
                out.append(num)
        return out

    def column_values(self, table: Sequence[Dict[str, Any]], column: str) -> List[float]:
        return self.numeric_values(row.get(column) for row in table)

    # ──────────────────────────────────────────────────────────
    # 2. DESCRIPTIVE STATISTICS
    # ──────────────────────────────────────────────────────────

    def compute_stats(self, values: Iterable[Any]) -> DescriptiveStats:
        """
        Mean, median, population std (divide by N), third standardized
        moment, min/max and nearest-rank quartiles.
        """
        nums = self.numeric_values(values)
        n = len(nums)
        if n == 0:
            return DescriptiveStats()

        ordered = sorted(nums)
        mean = sum(nums) / n
        if n % 2 == 0:
            median = (ordered[n // 2 - 1] + ordered[n // 2]) / 2
        else:
            median = ordered[n // 2]

        mean = _finite(mean)
        median = _finite(median)
        std = skewness = None
        if mean is not None:
            deviations = [v - mean for v in nums]
            # d * d saturates to inf where d ** 2 would raise OverflowError.
            std = _finite(math.sqrt(sum(d * d for d in deviations) / n))
        if std == 0:
            skewness = 0.0
        elif std is not None:
            z = [d / std for d in deviations]
            skewness = _finite(sum(t * t * t for t in z) / n)

        return DescriptiveStats(
            count=n,
            mean=mean,
            median=median,
            std=std,
            skewness=skewness,
            min=ordered[0],
            max=ordered[-1],
            q1=ordered[math.floor(n * 0.25)],
            q3=ordered[math.floor(n * 0.75)],
        )

    # ──────────────────────────────────────────────────────────
    # 3. OUTLIERS
    # ──────────────────────────────────────────────────────────

    def outlier_bounds(self, stats: DescriptiveStats) -> Optional[Dict[str, float]]:
        if not stats.defined:
            return None
        iqr = stats.iqr
        lower = stats.q1 - OUTLIER_IQR_FACTOR * iqr
        upper = stats.q3 + OUTLIER_IQR_FACTOR * iqr
        if not (math.isfinite(lower) and math.isfinite(upper)):
            return None
        return {"lower": lower, "upper": upper}

    def detect_outliers(self, values: Iterable[Any],
                        stats: Optional[DescriptiveStats] = None) -> List[float]:
        """Values strictly outside [Q1 − 1.5·IQR, Q3 + 1.5·IQR], in input order."""
        nums = self.numeric_values(values)
        stats = stats or self.compute_stats(nums)
        bounds = self.outlier_bounds(stats)
        if bounds is None:
            return []
        return [v for v in nums if v < bounds["lower"] or v > bounds["upper"]]

    def profile_columns(self, table: Sequence[Dict[str, Any]],
                        numeric_columns: Sequence[str]) -> Dict[str, Dict[str, Any]]:
        """Distribution stats and outliers for each numeric column."""
        distributions: Dict[str, Any] = {}
        outliers: Dict[str, List[float]] = {}
        for col in numeric_columns:
            values = self.column_values(table, col)
            stats = self.compute_stats(values)
            distributions[col] = stats
            outliers[col] = self.detect_outliers(values, stats)
        return {"distributions": distributions, "outliers": outliers}

    # ──────────────────────────────────────────────────────────
    # 4. DATA QUALITY
    # ──────────────────────────────────────────────────────────

    def assess_quality(self, table: Sequence[Dict[str, Any]],
                       columns: Sequence[str]) -> DataQuality:
        quality = DataQuality()
        total = len(table)
        if total == 0 or not columns:
            return quality

        for col in columns:
            present = [row.get(col) for row in table if not is_missing(row.get(col))]
            quality.completeness[col] = round(len(present) / total * 100, 1)
            quality.uniqueness[col] = len({str(v) for v in present})

        quality.overall = sum(quality.completeness.values()) / len(columns)
        return quality

    # ──────────────────────────────────────────────────────────
    # 5. AGGREGATION HELPERS
    # ──────────────────────────────────────────────────────────

    @staticmethod
    def sum_column(table: Sequence[Dict[str, Any]], column: Optional[str]) -> float:
        """Sum of parseable values; unparseable cells count as zero."""
        if column is None:
            return 0.0
        total = 0.0
        for row in table:
            num = parse_number(row.get(column))
            if num is not None:
                total += num
        return total

    @staticmethod
    def group_by(table: Sequence[Dict[str, Any]], column: str) -> Dict[str, List[Dict[str, Any]]]:
        """Rows grouped by the string form of `column`, first-seen order."""
        groups: Dict[str, List[Dict[str, Any]]] = {}
        for row in table:
            value = row.get(column)
            key = "" if value is None else str(value)
            groups.setdefault(key, []).append(row)
        return groups

    def segment_performance(self, segments: Dict[str, List[Dict[str, Any]]],
                            numeric_columns: Sequence[str]) -> Dict[str, Dict[str, Dict[str, float]]]:
        performance = {}
        for segment, rows in segments.items():
            metrics = {}
            for col in numeric_columns:
                nums = self.column_values(rows, col)
                total = sum(nums)
                metrics[col] = {
                    "sum": total,
                    "avg": total / len(nums) if nums else 0.0,
                    "count": len(nums),
                }
            performance[segment] = metrics
        return performance
