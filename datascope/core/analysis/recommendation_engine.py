"""
Recommendation Engine — Prioritized Next Steps
===============================================
Synthesizes recommendations from segment performance, trend direction
and data-quality gaps. Rule output comes first in a fixed order; AI
recommendations, when present, are appended after it.

Capabilities:
  1. Segment Focus        — best segment per demographic column
  2. Trend Response       — react to a downward temporal trend
  3. Data Collection      — columns under 70% completeness
  4. AI Merge             — normalize remote recommendations
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .trend_estimator import DOWNWARD

logger = logging.getLogger(__name__)

LOW_COMPLETENESS_PCT = 70.0
PRIORITIES = ("high", "medium", "low")


@dataclass
class Recommendation:
    priority: str              # high | medium | low
    title: str
    description: str
    source: str = "rules"      # rules | ai

    def to_dict(self) -> Dict[str, Any]:
        return {
            "priority": self.priority,
            "title": self.title,
            "description": self.description,
            "source": self.source,
        }


class RecommendationEngine:
    """
    Context keys read:
      segment_performance  {column: {segment: {metric: {sum, avg, count}}}}
      primary_metric       first numeric column, or None
      temporal_trend       TrendResult or None
      data_quality         DataQuality
    """

    def generate(self, context: Dict[str, Any]) -> List[Recommendation]:
        recs: List[Recommendation] = []

        best = self.best_segments(
            context.get("segment_performance") or {},
            context.get("primary_metric"),
        )
        if best:
            recs.append(Recommendation(
                priority="high",
                title="Focus on High-Performing Segments",
                description=(
                    f"Allocate more resources to {', '.join(best)} segments which show "
                    f"superior performance metrics."
                ),
            ))

        trend = context.get("temporal_trend")
        if trend is not None and trend.direction == DOWNWARD:
            recs.append(Recommendation(
                priority="high",
                title="Address Declining Trend",
                description=(
                    f"{trend.metric} is trending down over time (slope {trend.slope:.4f}). "
                    f"Implement strategies to reverse the declining performance trend."
                ),
            ))

        quality = context.get("data_quality")
        if quality is not None:
            low_cols = [c for c, pct in quality.completeness.items() if pct < LOW_COMPLETENESS_PCT]
            if low_cols:
                recs.append(Recommendation(
                    priority="medium",
                    title="Improve Data Collection",
                    description=(
                        f"Improve data collection for {', '.join(low_cols)} "
                        f"to enhance analysis accuracy."
                    ),
                ))

        return recs

    @staticmethod
    def best_segments(segment_performance: Dict[str, Dict[str, Dict[str, Any]]],
                      primary_metric: Optional[str]) -> List[str]:
        """'column: segment' for the segment with the highest average primary metric."""
        if not primary_metric:
            return []
        best = []
        for column, segments in segment_performance.items():
            if not segments:
                continue
            ranked = sorted(
                segments.items(),
                key=lambda item: item[1].get(primary_metric, {}).get("avg", 0),
                reverse=True,
            )
            best.append(f"{column}: {ranked[0][0]}")
        return best

    @staticmethod
    def from_ai(items: Sequence[Any]) -> List[Recommendation]:
        """Normalize AI recommendation entries; plain strings become medium priority."""
        recs = []
        for item in items or []:
            if isinstance(item, str):
                if item.strip():
                    recs.append(Recommendation("medium", "AI Recommendation", item.strip(), source="ai"))
                continue
            if not isinstance(item, dict):
                continue
            description = str(item.get("description") or "").strip()
            title = str(item.get("title") or "AI Recommendation").strip()
            if not description and not item.get("title"):
                continue
            priority = str(item.get("priority", "medium")).lower()
            if priority not in PRIORITIES:
                priority = "medium"
            recs.append(Recommendation(priority, title, description, source="ai"))
        return recs
