"""
Theme Detector — Ordered Rule Battery for Named Data Themes
============================================================
Turns column names and computed statistics into labeled,
confidence-scored themes.

Architecture:
  - THEME_RULES is a fixed, ordered list of ThemeRule entries
  - Each rule is a (predicate, builder) pair over a ThemeContext
  - A rule contributes zero or one ThemeRecord (the distribution rule
    contributes one per numeric column)
  - Output order is rule order; records are never sorted or deduplicated

Rules:
  TH-001  Financial Market Data     open/high/low/close present      0.95
  TH-002  Trading Volume Analysis   volume present                   0.90
  TH-003  Time Series Data          any date column                  0.85
  TH-004  Price Volatility Patterns high/low present                 0.80
  TH-005  Price Trend: <direction>  close present, > 10 rows         0.80 / 0.50
  TH-006  <col> Distribution: ...   each numeric column              0.70

Column names match the vocabulary case-insensitively and exactly.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .statistical_analyzer import DescriptiveStats, StatisticalAnalyzer
from .trend_estimator import TrendEstimator
from .type_inference import ColumnClassification, find_column, has_columns, parse_number

logger = logging.getLogger(__name__)

OHLC_COLUMNS = ("open", "high", "low", "close")
TREND_MIN_ROWS = 10
SKEW_LIMIT = 1.0


# ═══════════════════════════════════════════════════════════════════
# DATA CLASSES
# ═══════════════════════════════════════════════════════════════════

@dataclass
class ThemeRecord:
    name: str
    description: str
    confidence: float           # (0, 1]
    indicators: List[str]       # Columns that triggered the theme
    type: str                   # financial | temporal | statistical | trend | distribution
    metrics: Optional[Dict[str, Any]] = None
    rule_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "confidence": self.confidence,
            "indicators": list(self.indicators),
            "type": self.type,
            "metrics": self.metrics,
            "rule_id": self.rule_id,
        }


@dataclass
class ThemeContext:
    """Everything a rule may look at. Built once per detection pass."""
    table: Sequence[Dict[str, Any]]
    columns: List[str]
    classification: ColumnClassification
    stats: Dict[str, DescriptiveStats] = field(default_factory=dict)

    def column(self, name: str) -> Optional[str]:
        return find_column(self.columns, name)

    def has(self, *names: str) -> bool:
        return has_columns(self.columns, names)


@dataclass
class ThemeRule:
    rule_id: str
    predicate: Callable[[ThemeContext], bool]
    builder: Callable[[ThemeContext], List[ThemeRecord]]


# ═══════════════════════════════════════════════════════════════════
# RULE BUILDERS
# ═══════════════════════════════════════════════════════════════════

def _financial_market(ctx: ThemeContext) -> List[ThemeRecord]:
    return [ThemeRecord(
        name="Financial Market Data",
        description="OHLC (Open, High, Low, Close) price data typical of stock market or trading data",
        confidence=0.95,
        indicators=[ctx.column(c) for c in OHLC_COLUMNS],
        type="financial",
    )]


def _trading_volume(ctx: ThemeContext) -> List[ThemeRecord]:
    return [ThemeRecord(
        name="Trading Volume Analysis",
        description="Volume data indicating trading activity and market liquidity",
        confidence=0.9,
        indicators=[ctx.column("volume")],
        type="financial",
    )]


def _time_series(ctx: ThemeContext) -> List[ThemeRecord]:
    return [ThemeRecord(
        name="Time Series Data",
        description="Data with temporal components allowing for trend analysis over time",
        confidence=0.85,
        indicators=list(ctx.classification.date),
        type="temporal",
    )]


def average_volatility(table: Sequence[Dict[str, Any]], high_col: str, low_col: str) -> Optional[float]:
    """Mean of (high − low) / low over rows where both parse and low != 0."""
    ratios = []
    for row in table:
        high = parse_number(row.get(high_col))
        low = parse_number(row.get(low_col))
        if high is None or low is None or low == 0:
            continue
        ratios.append((high - low) / low)
    if not ratios:
        return None
    return sum(ratios) / len(ratios)


def _price_volatility(ctx: ThemeContext) -> List[ThemeRecord]:
    high_col, low_col = ctx.column("high"), ctx.column("low")
    avg = average_volatility(ctx.table, high_col, low_col)
    if avg is None:
        description = "Price volatility could not be computed: no rows with valid high/low prices"
    else:
        description = f"Price volatility analysis shows average volatility of {avg:.4f}"
    return [ThemeRecord(
        name="Price Volatility Patterns",
        description=description,
        confidence=0.8,
        indicators=[high_col, low_col],
        type="statistical",
        metrics={"avg_volatility": avg},
    )]


def _price_trend(ctx: ThemeContext) -> List[ThemeRecord]:
    close_col = ctx.column("close")
    trend = TrendEstimator().fit_column(ctx.table, close_col)
    return [ThemeRecord(
        name=f"Price Trend: {trend.label}",
        description=(
            f"Overall price trend showing {trend.label} movement "
            f"with slope of {trend.slope:.6f}"
        ),
        confidence=0.8 if trend.is_significant else 0.5,
        indicators=[close_col],
        type="trend",
        metrics=trend.to_dict(),
    )]


def distribution_type(skewness: float) -> str:
    if abs(skewness) > SKEW_LIMIT:
        return "Right-skewed" if skewness > 0 else "Left-skewed"
    return "Normal"


def _distributions(ctx: ThemeContext) -> List[ThemeRecord]:
    analyzer = StatisticalAnalyzer()
    records = []
    for col in ctx.classification.numeric:
        stats = ctx.stats.get(col)
        if stats is None:
            stats = analyzer.compute_stats(row.get(col) for row in ctx.table)
        if stats.skewness is None:
            continue
        kind = distribution_type(stats.skewness)
        records.append(ThemeRecord(
            name=f"{col} Distribution: {kind}",
            description=f"Statistical distribution of {col} showing {kind.lower()} characteristics",
            confidence=0.7,
            indicators=[col],
            type="distribution",
            metrics=stats.to_dict(),
        ))
    return records


# ═══════════════════════════════════════════════════════════════════
# RULE TABLE: evaluation order is output order
# ═══════════════════════════════════════════════════════════════════

THEME_RULES: List[ThemeRule] = [
    ThemeRule("TH-001", lambda ctx: ctx.has(*OHLC_COLUMNS), _financial_market),
    ThemeRule("TH-002", lambda ctx: ctx.has("volume"), _trading_volume),
    ThemeRule("TH-003", lambda ctx: len(ctx.classification.date) > 0, _time_series),
    ThemeRule("TH-004", lambda ctx: ctx.has("high", "low"), _price_volatility),
    ThemeRule("TH-005", lambda ctx: ctx.has("close") and len(ctx.table) > TREND_MIN_ROWS, _price_trend),
    ThemeRule("TH-006", lambda ctx: len(ctx.classification.numeric) > 0, _distributions),
]


class ThemeDetector:
    """
    Evaluates the theme rule battery against one table.
    """

    def __init__(self, rules: Optional[List[ThemeRule]] = None):
        self.rules = rules if rules is not None else THEME_RULES

    def detect(self, table: Sequence[Dict[str, Any]], classification: ColumnClassification,
               stats: Optional[Dict[str, DescriptiveStats]] = None) -> List[ThemeRecord]:
        if not table:
            return []
        ctx = ThemeContext(
            table=table,
            columns=list(table[0].keys()),
            classification=classification,
            stats=stats or {},
        )

        themes: List[ThemeRecord] = []
        for rule in self.rules:
            if not rule.predicate(ctx):
                continue
            for record in rule.builder(ctx):
                record.rule_id = rule.rule_id
                themes.append(record)

        logger.debug(f"Theme detection: {len(themes)} theme(s) from {len(self.rules)} rule(s)")
        return themes
