"""
LLM Reasoner — AI layer tests
==============================
The remote provider is never contacted: clients are replaced with
in-process fakes and the rule-based result is checked before and after
the merge.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from datascope.core.analysis.llm_reasoner import (
    AIConfig, AIInsights, AIProvider, LLMReasoner, _parse_json_text, parse_local_response,
)
from datascope.core.analysis.orchestrator import AnalysisConfig, AnalysisOrchestrator


ROWS = [
    {"region": "north", "sales": "120", "cost": "80"},
    {"region": "south", "sales": "90", "cost": "70"},
    {"region": "north", "sales": "150", "cost": "95"},
    {"region": "east", "sales": "60", "cost": "55"},
]

PAYLOAD = {
    "executiveSummary": "Sales are concentrated in the north.",
    "keyInsights": ["North leads sales", "East trails"],
    "recommendations": [
        {"priority": "high", "title": "Expand north", "description": "Add stock in the north region"},
        "Review east pricing",
    ],
    "businessImpact": "Moderate",
}


class FakeClient:
    def __init__(self, payload=None, error=None, delay=0.0):
        self.payload = payload
        self.error = error
        self.delay = delay
        self.calls = 0

    async def complete(self, messages, summary, config):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.payload


def make_reasoner(client=None, **config):
    config.setdefault("provider", AIProvider.OPENAI)
    config.setdefault("max_retries", 0)
    reasoner = LLMReasoner(AIConfig(**config))
    if client is not None:
        reasoner._clients[reasoner.config.provider] = client
    return reasoner


def make_orchestrator(reasoner):
    return AnalysisOrchestrator(config=AnalysisConfig(), reasoner=reasoner)


# ═══════════════════════════════════════════════════════════════
# 1. FALLBACK BEHAVIOUR
# ═══════════════════════════════════════════════════════════════

class TestFallback:

    def test_rules_only_never_calls_out(self):
        reasoner = LLMReasoner(AIConfig())
        assert not reasoner.enabled
        with patch.object(LLMReasoner, "_call_provider", new_callable=AsyncMock) as call:
            result = asyncio.run(make_orchestrator(reasoner).analyze_with_ai(ROWS))
        call.assert_not_called()
        assert result.source == "rules_only"
        assert result.ai_insights is None

    def test_provider_error_keeps_rule_output(self):
        client = FakeClient(error=httpx.ConnectError("connection refused"))
        reasoner = make_reasoner(client)
        orchestrator = make_orchestrator(reasoner)

        expected = orchestrator.analyze(ROWS).to_dict()
        result = asyncio.run(orchestrator.analyze_with_ai(ROWS))

        assert result.to_dict() == expected
        assert client.calls == 1
        assert reasoner.get_stats()["failures"] == 1

    def test_timeout_keeps_rule_output(self):
        reasoner = make_reasoner(FakeClient(payload=PAYLOAD, delay=1.0), timeout_seconds=0.05)
        orchestrator = make_orchestrator(reasoner)
        expected = orchestrator.analyze(ROWS).to_dict()
        result = asyncio.run(orchestrator.analyze_with_ai(ROWS))
        assert result.to_dict() == expected

    def test_malformed_response_returns_none(self):
        reasoner = make_reasoner()
        with patch.object(LLMReasoner, "_call_provider", new_callable=AsyncMock,
                          side_effect=ValueError("LLM response is not valid JSON")):
            from datascope.core.analysis.type_inference import ColumnTypeInferrer
            cls = ColumnTypeInferrer().classify(ROWS)
            assert asyncio.run(reasoner.generate_insights(ROWS, cls)) is None

    def test_proxy_requires_base_url(self):
        reasoner = make_reasoner(provider=AIProvider.PROXY)
        from datascope.core.analysis.type_inference import ColumnTypeInferrer
        cls = ColumnTypeInferrer().classify(ROWS)
        assert asyncio.run(reasoner.generate_insights(ROWS, cls)) is None

    def test_retries_transient_http_errors(self):
        client = FakeClient(error=httpx.ReadTimeout("slow"))
        reasoner = make_reasoner(client, max_retries=1)
        with pytest.raises(httpx.ReadTimeout):
            asyncio.run(reasoner._call_provider([], {}))
        assert client.calls == 2


# ═══════════════════════════════════════════════════════════════
# 2. MERGE
# ═══════════════════════════════════════════════════════════════

class TestMerge:

    def test_successful_merge_appends(self):
        reasoner = make_reasoner(FakeClient(payload=PAYLOAD))
        orchestrator = make_orchestrator(reasoner)

        rules = orchestrator.analyze(ROWS)
        merged = asyncio.run(orchestrator.analyze_with_ai(ROWS))

        n_rules = len(rules.recommendations)
        assert [r.to_dict() for r in merged.recommendations[:n_rules]] == \
            [r.to_dict() for r in rules.recommendations]
        ai_recs = merged.recommendations[n_rules:]
        assert [r.title for r in ai_recs] == ["Expand north", "AI Recommendation"]
        assert all(r.source == "ai" for r in ai_recs)

        ai_insights = [i for i in merged.insights if i.type == "ai_insight"]
        assert [i.description for i in ai_insights] == ["North leads sales", "East trails"]
        assert merged.source == "ai:openai"
        assert merged.ai_insights.executive_summary == "Sales are concentrated in the north."

    def test_merge_does_not_touch_rule_lists(self):
        orchestrator = make_orchestrator(make_reasoner())
        result = orchestrator.analyze(ROWS)
        rule_recs = result.recommendations
        before = list(rule_recs)
        orchestrator.merge_ai_insights(result, AIInsights.from_payload(PAYLOAD, source="proxy"))
        assert rule_recs == before
        assert result.source == "ai:proxy"


# ═══════════════════════════════════════════════════════════════
# 3. PAYLOAD & PROMPT
# ═══════════════════════════════════════════════════════════════

class TestPayload:

    def test_from_payload_key_styles(self):
        camel = AIInsights.from_payload({"keyInsights": ["a"], "businessRecommendations": ["b"]})
        snake = AIInsights.from_payload({"key_insights": ["a"], "recommendations": ["b"]})
        assert camel.key_insights == snake.key_insights == ["a"]
        assert camel.recommendations == snake.recommendations == ["b"]

    def test_from_payload_tolerates_bad_shapes(self):
        ai = AIInsights.from_payload({"keyInsights": "single", "recommendations": "oops", "patterns": None})
        assert ai.key_insights == ["single"]
        assert ai.recommendations == []
        assert ai.patterns == []

    def test_parse_json_text(self):
        assert _parse_json_text('{"a": 1}') == {"a": 1}
        assert _parse_json_text('Here you go:\n```json\n{"a": 2}\n```') == {"a": 2}
        with pytest.raises(ValueError):
            _parse_json_text("no json at all")
        with pytest.raises(ValueError):
            _parse_json_text("[1, 2]")

    def test_parse_local_response(self):
        parsed = parse_local_response("Summary line\n- first point\n2. second point\n")
        assert parsed["keyInsights"] == ["first point", "second point"]
        assert parsed["executiveSummary"].startswith("Summary line")
        assert parse_local_response("")["keyInsights"] == ["AI analysis completed using local model"]

    def test_summary_is_compact(self):
        from datascope.core.analysis.type_inference import ColumnTypeInferrer
        rows = [{"x": str(i), "label": f"row{i}"} for i in range(50)]
        reasoner = make_reasoner(sample_rows=20)
        summary = reasoner.build_summary(rows, ColumnTypeInferrer().classify(rows))
        assert summary["total_rows"] == 50
        assert len(summary["sample_rows"]) == 20
        assert summary["statistics"]["x"] == {"mean": 24.5, "min": 0.0, "max": 49.0, "total": 1225.0}
        messages = reasoner._prompt_builder.build_messages(summary)
        assert messages[0]["role"] == "system"
        assert "Total Records: 50" in messages[1]["content"]
