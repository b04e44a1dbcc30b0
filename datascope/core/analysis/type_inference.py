"""
Type Inference — numeric / date / categorical column classification.

Works on a sample taken from the head of the table. A column lands in
exactly one bucket: the numeric test runs first, the date test only for
columns that failed it, everything else is categorical.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

NUMERIC = "numeric"
DATE = "date"
CATEGORICAL = "categorical"

DATE_NAME_HINTS = ("date", "time")
MIN_DATE_YEAR = 1900
# Fill the fields a partial date omits. Both are leap years so "Feb 29"
# resolves under either; a value whose year moves with the default has none.
_DATE_DEFAULT = datetime(2000, 1, 1)
_DATE_ALT_DEFAULT = datetime(2004, 1, 1)


def is_missing(value: Any) -> bool:
    """None, empty / whitespace strings and float NaN count as missing."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


def parse_number(value: Any) -> Optional[float]:
    """Finite float or None. Booleans are not numbers here."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    else:
        try:
            num = float(str(value).strip())
        except ValueError:
            return None
    return num if math.isfinite(num) else None


def parse_date(value: Any) -> Optional[datetime]:
    """
    Calendar date with an explicit year > 1900, or None. Bare month or
    weekday names ("May", "Mon") and times alone are rejected. Aware values
    come back as naive UTC.
    """
    if value is None or isinstance(value, (bool, int, float)):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = date_parser.parse(text, default=_DATE_DEFAULT)
            if date_parser.parse(text, default=_DATE_ALT_DEFAULT).year != parsed.year:
                return None
        except (ValueError, OverflowError):
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed if parsed.year > MIN_DATE_YEAR else None


@dataclass
class ColumnClassification:
    """Mutually exclusive column buckets, in table column order."""
    numeric: List[str] = field(default_factory=list)
    date: List[str] = field(default_factory=list)
    categorical: List[str] = field(default_factory=list)

    def kind_of(self, column: str) -> Optional[str]:
        if column in self.numeric:
            return NUMERIC
        if column in self.date:
            return DATE
        if column in self.categorical:
            return CATEGORICAL
        return None

    def as_mapping(self) -> Dict[str, str]:
        mapping = {c: NUMERIC for c in self.numeric}
        mapping.update({c: DATE for c in self.date})
        mapping.update({c: CATEGORICAL for c in self.categorical})
        return mapping

    def to_dict(self) -> Dict[str, Any]:
        return {
            "numeric": list(self.numeric),
            "date": list(self.date),
            "categorical": list(self.categorical),
        }


class ColumnTypeInferrer:
    """
    Classifies every column of a table from a head sample.

    Args:
        sample_size: rows taken from the top of the table.
        threshold: fraction of the sample that must parse (strictly greater).
        require_date_name_hint: if True, a date column must also carry
            'date' or 'time' in its name.
    """

    def __init__(self, sample_size: int = 100, threshold: float = 0.7,
                 require_date_name_hint: bool = False):
        self.sample_size = sample_size
        self.threshold = threshold
        self.require_date_name_hint = require_date_name_hint

    def classify(self, table: Sequence[Dict[str, Any]]) -> ColumnClassification:
        result = ColumnClassification()
        if not table:
            return result

        head = table[: min(self.sample_size, len(table))]
        for col in table[0].keys():
            sample = [row.get(col) for row in head if not is_missing(row.get(col))]
            kind = self.classify_sample(col, sample)
            getattr(result, kind).append(col)

        logger.debug(
            f"Classified {len(table[0])} columns: {len(result.numeric)} numeric, "
            f"{len(result.date)} date, {len(result.categorical)} categorical"
        )
        return result

    def classify_sample(self, column: str, sample: List[Any]) -> str:
        if not sample:
            return CATEGORICAL

        numeric_count = sum(1 for v in sample if parse_number(v) is not None)
        if numeric_count / len(sample) > self.threshold:
            return NUMERIC

        date_count = sum(1 for v in sample if parse_date(v) is not None)
        if date_count / len(sample) > self.threshold and self._date_name_ok(column):
            return DATE

        return CATEGORICAL

    def _date_name_ok(self, column: str) -> bool:
        if not self.require_date_name_hint:
            return True
        name = str(column).lower()
        return any(hint in name for hint in DATE_NAME_HINTS)


def find_column(columns: Sequence[str], name: str) -> Optional[str]:
    """Actual column whose name equals `name` ignoring case, else None."""
    target = name.lower()
    for col in columns:
        if str(col).lower() == target:
            return col
    return None


def has_columns(columns: Sequence[str], names: Sequence[str]) -> bool:
    return all(find_column(columns, n) is not None for n in names)
