"""
Analysis Orchestrator — The Single Entry Point
================================================
Sequences every analysis component over one loaded table and assembles
the AnalysisResult a renderer consumes.

Pipeline:
  validate → TypeInference → DataQuality → Executive Summary
  → Performance / Demographics / Temporal / Statistical / Correlations
  → ThemeDetector → InsightEngine → RecommendationEngine
  → (optional) LLMReasoner merge

Design:
  - Deterministic: the same table always yields the same result; a
    timestamp appears only when explicitly requested
  - The input table is read, never mutated
  - Structural input errors raise before any computation; numeric edge
    cases are absorbed by the components
  - The AI merge is all-or-nothing: on failure the rule-based result is
    returned exactly as computed
"""

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from datascope.config import settings
from datascope.core.ingestion import validate_table
from .correlation_engine import CorrelationEngine, CorrelationRecord
from .insight_engine import Insight, InsightEngine
from .llm_reasoner import AIInsights, LLMReasoner
from .recommendation_engine import Recommendation, RecommendationEngine
from .statistical_analyzer import DataQuality, StatisticalAnalyzer
from .theme_detector import ThemeDetector, ThemeRecord
from .trend_estimator import INSUFFICIENT_DATA, TrendEstimator, TrendResult
from .type_inference import ColumnClassification, ColumnTypeInferrer, find_column, has_columns, parse_number

logger = logging.getLogger(__name__)

AD_SPEND_COLUMNS = ("impressions", "clicks", "spent")
SEGMENT_HINTS = ("age", "gender", "location", "segment", "category", "type")
KEY_METRIC_COLUMNS = 4
TOP_PERFORMERS = 10


@dataclass
class AnalysisConfig:
    sample_size: int = 100
    classify_threshold: float = 0.7
    require_date_name_hint: bool = False
    exploratory_correlation_threshold: float = 0.1
    significant_correlation_threshold: float = 0.3

    @classmethod
    def from_settings(cls) -> "AnalysisConfig":
        return cls(
            sample_size=settings.CLASSIFY_SAMPLE_SIZE,
            classify_threshold=settings.CLASSIFY_THRESHOLD,
            require_date_name_hint=settings.REQUIRE_DATE_NAME_HINT,
            exploratory_correlation_threshold=settings.EXPLORATORY_CORRELATION_THRESHOLD,
            significant_correlation_threshold=settings.SIGNIFICANT_CORRELATION_THRESHOLD,
        )


# ═══════════════════════════════════════════════════════════════
# RESULT TYPE
# ═══════════════════════════════════════════════════════════════

class AnalysisResult:
    """Complete analysis of one table."""
    def __init__(self):
        self.columns: List[str] = []
        self.classification: ColumnClassification = ColumnClassification()
        self.data_quality: DataQuality = DataQuality()
        self.executive_summary: Dict[str, Any] = {}
        self.performance: Dict[str, Any] = {}
        self.demographics: Dict[str, Any] = {}
        self.temporal_trend: Optional[TrendResult] = None
        self.statistical: Dict[str, Any] = {"distributions": {}, "outliers": {}}
        self.correlations: List[CorrelationRecord] = []
        self.significant_correlations: List[CorrelationRecord] = []
        self.themes: List[ThemeRecord] = []
        self.insights: List[Insight] = []
        self.recommendations: List[Recommendation] = []
        self.ai_insights: Optional[AIInsights] = None
        self.source: str = "rules_only"
        self.generated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "columns": list(self.columns),
            "classification": self.classification.to_dict(),
            "column_types": self.classification.as_mapping(),
            "data_quality": self.data_quality.to_dict(),
            "executive_summary": self.executive_summary,
            "performance": self.performance,
            "demographics": self.demographics,
            "temporal": {"trend": self.temporal_trend.to_dict() if self.temporal_trend else None},
            "statistical": {
                "distributions": {
                    col: stats.to_dict() for col, stats in self.statistical["distributions"].items()
                },
                "outliers": self.statistical["outliers"],
            },
            "correlations": [c.to_dict() for c in self.correlations],
            "significant_correlations": [c.to_dict() for c in self.significant_correlations],
            "themes": [t.to_dict() for t in self.themes],
            "insights": [i.to_dict() for i in self.insights],
            "recommendations": [r.to_dict() for r in self.recommendations],
            "ai_insights": self.ai_insights.to_dict() if self.ai_insights else None,
            "source": self.source,
            "counts": {
                "rows": self.executive_summary.get("total_rows", 0),
                "themes": len(self.themes),
                "correlations": len(self.correlations),
                "insights": len(self.insights),
                "recommendations": len(self.recommendations),
            },
        }
        if self.generated_at:
            out["generated_at"] = self.generated_at
        return out


def format_column_name(col: str) -> str:
    """'total_spent' → 'Total Spent'; interior capitals are preserved."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), str(col).replace("_", " "))


# ═══════════════════════════════════════════════════════════════
# ORCHESTRATOR
# ═══════════════════════════════════════════════════════════════

class AnalysisOrchestrator:
    """
    Wires the analysis components into one pipeline.

    Usage:
        orchestrator = AnalysisOrchestrator()
        result = orchestrator.analyze(rows)
        result = await orchestrator.analyze_with_ai(rows)
    """

    def __init__(self, config: Optional[AnalysisConfig] = None,
                 reasoner: Optional[LLMReasoner] = None):
        self.config = config or AnalysisConfig.from_settings()
        self.inferrer = ColumnTypeInferrer(
            sample_size=self.config.sample_size,
            threshold=self.config.classify_threshold,
            require_date_name_hint=self.config.require_date_name_hint,
        )
        self.stats = StatisticalAnalyzer()
        self.trends = TrendEstimator()
        self.exploratory_correlations = CorrelationEngine(self.config.exploratory_correlation_threshold)
        self.significant_correlations = CorrelationEngine(self.config.significant_correlation_threshold)
        self.theme_detector = ThemeDetector()
        self.insight_engine = InsightEngine()
        self.recommendation_engine = RecommendationEngine()
        self._reasoner = reasoner

    @property
    def reasoner(self) -> LLMReasoner:
        if self._reasoner is None:
            self._reasoner = LLMReasoner()
        return self._reasoner

    # ──────────────────────────────────────────────────────────
    # RULE-BASED ANALYSIS
    # ──────────────────────────────────────────────────────────

    def analyze(self, table: Sequence[Dict[str, Any]], include_timestamp: bool = False) -> AnalysisResult:
        columns = validate_table(table)
        t0 = time.time()
        result = AnalysisResult()
        result.columns = columns

        # Step 1: profiling and quality
        result.classification = self.inferrer.classify(table)
        result.data_quality = self.stats.assess_quality(table, columns)
        numeric = result.classification.numeric

        # Step 2: executive summary
        result.executive_summary = self._executive_summary(table, columns, result)

        # Step 3: detailed analyses
        result.performance = self._performance(table, columns, numeric)
        result.demographics = self._demographics(table, result.classification)
        result.temporal_trend = self._temporal(table, result.classification)
        result.statistical = self.stats.profile_columns(table, numeric)
        result.correlations = self.exploratory_correlations.compute(table, numeric)
        result.significant_correlations = self.significant_correlations.compute(table, numeric)

        # Step 4: themes, insights, recommendations
        result.themes = self.theme_detector.detect(
            table, result.classification, result.statistical["distributions"]
        )
        result.insights = self.insight_engine.evaluate({
            "data_quality": result.data_quality,
            "efficiency": result.performance.get("efficiency"),
            "significant_correlations": result.significant_correlations,
        })
        result.recommendations = self.recommendation_engine.generate({
            "segment_performance": result.demographics.get("performance"),
            "primary_metric": numeric[0] if numeric else None,
            "temporal_trend": result.temporal_trend,
            "data_quality": result.data_quality,
        })

        if include_timestamp:
            result.generated_at = datetime.now(timezone.utc).isoformat()

        logger.info(
            f"Analyzed {len(table)} rows × {len(columns)} columns in "
            f"{(time.time() - t0) * 1000:.0f}ms: {len(result.themes)} themes, "
            f"{len(result.correlations)} correlations, {len(result.recommendations)} recommendations"
        )
        return result

    # ──────────────────────────────────────────────────────────
    # AI-ENHANCED ANALYSIS
    # ──────────────────────────────────────────────────────────

    async def analyze_with_ai(self, table: Sequence[Dict[str, Any]],
                              include_timestamp: bool = False) -> AnalysisResult:
        """
        Rule-based analysis plus remote insights. The remote call is the only
        suspension point; if it yields nothing the rule-based result stands.
        """
        result = self.analyze(table, include_timestamp=include_timestamp)
        if not self.reasoner.enabled:
            return result

        ai = await self.reasoner.generate_insights(table, result.classification)
        if ai is None:
            return result

        self.merge_ai_insights(result, ai)
        return result

    def merge_ai_insights(self, result: AnalysisResult, ai: AIInsights) -> None:
        ai_insights = [
            Insight(type="ai_insight", title="AI Insight", description=text)
            for text in ai.key_insights
        ]
        ai_recs = self.recommendation_engine.from_ai(ai.recommendations)

        result.insights = result.insights + ai_insights
        result.recommendations = result.recommendations + ai_recs
        result.ai_insights = ai
        result.source = f"ai:{ai.source}" if ai.source else "ai"

    # ──────────────────────────────────────────────────────────
    # SUB-ANALYSES
    # ──────────────────────────────────────────────────────────

    def _executive_summary(self, table, columns, result: AnalysisResult) -> Dict[str, Any]:
        cls = result.classification
        summary = {
            "total_rows": len(table),
            "total_columns": len(columns),
            "numeric_columns": len(cls.numeric),
            "date_columns": len(cls.date),
            "categorical_columns": len(cls.categorical),
            "data_quality_score": result.data_quality.overall,
            "key_metrics": [],
        }

        if has_columns(columns, AD_SPEND_COLUMNS):
            impressions = self.stats.sum_column(table, find_column(columns, "impressions"))
            clicks = self.stats.sum_column(table, find_column(columns, "clicks"))
            spent = self.stats.sum_column(table, find_column(columns, "spent"))
            ctr = clicks / impressions * 100 if impressions > 0 else 0.0
            summary["key_metrics"] = [
                {"label": "Total Impressions", "value": impressions, "type": "count"},
                {"label": "Total Clicks", "value": clicks, "type": "count"},
                {"label": "Total Spend", "value": spent, "type": "currency"},
                {"label": "Overall CTR", "value": ctr, "type": "percentage"},
            ]
        else:
            summary["key_metrics"] = [
                {"label": format_column_name(col), "value": self.stats.sum_column(table, col), "type": "count"}
                for col in cls.numeric[:KEY_METRIC_COLUMNS]
            ]
        return summary

    def _performance(self, table, columns, numeric: List[str]) -> Dict[str, Any]:
        performance: Dict[str, Any] = {"primary_metric": None, "top_performers": [], "efficiency": {}}

        if numeric:
            primary = numeric[0]
            ranked = [(parse_number(row.get(primary)), i) for i, row in enumerate(table)]
            valued = sorted(((v, i) for v, i in ranked if v is not None), key=lambda p: (-p[0], p[1]))
            performance["primary_metric"] = primary
            performance["top_performers"] = [dict(table[i]) for _, i in valued[:TOP_PERFORMERS]]

        if has_columns(columns, ("spent", "clicks")) or has_columns(columns, ("cost", "revenue")):
            performance["efficiency"] = self._efficiency(table, columns)
        return performance

    def _efficiency(self, table, columns) -> Dict[str, float]:
        efficiency = {}
        spent_col = find_column(columns, "spent")

        if has_columns(columns, ("spent", "clicks")):
            spent = self.stats.sum_column(table, spent_col)
            clicks = self.stats.sum_column(table, find_column(columns, "clicks"))
            efficiency["cpc"] = spent / clicks if clicks > 0 else 0.0

        if has_columns(columns, ("spent", "approved_conversion")):
            spent = self.stats.sum_column(table, spent_col)
            conversions = self.stats.sum_column(table, find_column(columns, "approved_conversion"))
            efficiency["cost_per_conversion"] = spent / conversions if conversions > 0 else 0.0
            efficiency["roi"] = conversions / spent if spent > 0 else 0.0
        elif has_columns(columns, ("cost", "revenue")):
            cost = self.stats.sum_column(table, find_column(columns, "cost"))
            revenue = self.stats.sum_column(table, find_column(columns, "revenue"))
            efficiency["roi"] = revenue / cost if cost > 0 else 0.0
        return efficiency

    def _demographics(self, table, cls: ColumnClassification) -> Dict[str, Any]:
        demographics: Dict[str, Any] = {"segments": {}, "performance": {}}
        demo_columns = [
            col for col in cls.categorical
            if any(hint in str(col).lower() for hint in SEGMENT_HINTS)
        ]
        for col in demo_columns:
            groups = self.stats.group_by(table, col)
            demographics["segments"][col] = {seg: len(rows) for seg, rows in groups.items()}
            if cls.numeric:
                demographics["performance"][col] = self.stats.segment_performance(groups, cls.numeric)
        return demographics

    def _temporal(self, table, cls: ColumnClassification) -> Optional[TrendResult]:
        if not cls.date:
            return None
        if not cls.numeric:
            return TrendResult(direction=INSUFFICIENT_DATA, slope=0.0)
        return self.trends.fit_time_series(table, cls.date[0], cls.numeric[0])
