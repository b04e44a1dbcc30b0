"""
Analysis Engine — Core Module
==============================
Statistical inference over one uploaded table: column typing, descriptive
statistics, trends, correlations and rule-based theme detection, with an
optional LLM insight layer.

Components:
  ┌────────────────────────────────────────────────────────┐
  │ AnalysisOrchestrator — Single entry point, one table   │
  │ ColumnTypeInferrer   — numeric / date / categorical    │
  │ StatisticalAnalyzer  — stats, outliers, data quality   │
  │ TrendEstimator       — OLS slope and direction         │
  │ CorrelationEngine    — pairwise Pearson, ranked        │
  │ ThemeDetector        — ordered theme rule battery      │
  │ InsightEngine        — narrative findings              │
  │ RecommendationEngine — prioritized next steps          │
  │ LLMReasoner          — optional remote AI insights     │
  └────────────────────────────────────────────────────────┘

Usage:
  from datascope.core.analysis import AnalysisOrchestrator
  result = AnalysisOrchestrator().analyze(rows)
  payload = result.to_dict()
"""

from .type_inference import ColumnClassification, ColumnTypeInferrer
from .statistical_analyzer import DataQuality, DescriptiveStats, StatisticalAnalyzer
from .trend_estimator import TrendEstimator, TrendResult
from .correlation_engine import CorrelationEngine, CorrelationRecord
from .theme_detector import THEME_RULES, ThemeDetector, ThemeRecord, ThemeRule
from .insight_engine import Insight, InsightEngine
from .recommendation_engine import Recommendation, RecommendationEngine
from .llm_reasoner import AIConfig, AIInsights, AIProvider, LLMReasoner
from .orchestrator import AnalysisConfig, AnalysisOrchestrator, AnalysisResult

__all__ = [
    "AnalysisOrchestrator", "AnalysisConfig", "AnalysisResult",
    "ColumnTypeInferrer", "ColumnClassification",
    "StatisticalAnalyzer", "DescriptiveStats", "DataQuality",
    "TrendEstimator", "TrendResult",
    "CorrelationEngine", "CorrelationRecord",
    "ThemeDetector", "ThemeRecord", "ThemeRule", "THEME_RULES",
    "InsightEngine", "Insight",
    "RecommendationEngine", "Recommendation",
    "LLMReasoner", "AIConfig", "AIInsights", "AIProvider",
]
