"""
Insight Engine — Deterministic Narrative Findings
==================================================
Rule battery that reads the partially assembled analysis and emits short,
presentable findings. Every insight carries the rule that produced it.

Rules:
  IN-001  Data Quality Concern          overall completeness < 80%
  IN-002  ROI Optimization Opportunity  ad-spend ROI < 1
  IN-003  Strong Correlations Detected  significant pairs with |r| > 0.7
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

QUALITY_CONCERN_PCT = 80.0
STRONG_CORRELATION = 0.7


@dataclass
class Insight:
    type: str                  # warning | opportunity | insight | ai_insight
    title: str
    description: str
    rule_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "rule_id": self.rule_id,
        }


class InsightEngine:
    """
    Context keys read:
      data_quality              DataQuality
      efficiency                dict with optional cpc / cost_per_conversion / roi
      significant_correlations  List[CorrelationRecord]
    """

    def evaluate(self, context: Dict[str, Any]) -> List[Insight]:
        insights: List[Insight] = []
        self._rules_data_quality(context, insights)
        self._rules_efficiency(context, insights)
        self._rules_correlations(context, insights)
        return insights

    def _rules_data_quality(self, ctx: Dict, out: List[Insight]):
        quality = ctx.get("data_quality")
        if quality is None:
            return
        if quality.overall < QUALITY_CONCERN_PCT:
            out.append(Insight(
                type="warning",
                title="Data Quality Concern",
                description=(
                    f"Average data completeness is {quality.overall:.1f}%. "
                    f"Consider data cleaning to improve analysis accuracy."
                ),
                rule_id="IN-001",
            ))

    def _rules_efficiency(self, ctx: Dict, out: List[Insight]):
        roi = (ctx.get("efficiency") or {}).get("roi")
        # ROI of exactly 0 means no spend or no conversions recorded.
        if roi and roi < 1:
            out.append(Insight(
                type="opportunity",
                title="ROI Optimization Opportunity",
                description=(
                    f"Current ROI is {roi:.2f}. Focus on high-performing segments "
                    f"to improve returns."
                ),
                rule_id="IN-002",
            ))

    def _rules_correlations(self, ctx: Dict, out: List[Insight]):
        strong = [
            c for c in ctx.get("significant_correlations", [])
            if abs(c.coefficient) > STRONG_CORRELATION
        ]
        if strong:
            out.append(Insight(
                type="insight",
                title="Strong Correlations Detected",
                description=(
                    f"Found {len(strong)} strong correlations between numeric columns "
                    f"worth investigating further."
                ),
                rule_id="IN-003",
            ))
