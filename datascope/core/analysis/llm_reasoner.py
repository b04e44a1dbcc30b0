"""
LLM Reasoner — Optional AI Insight Layer
==========================================
Provider-agnostic call-out that sends a compact dataset summary to an LLM
and parses back structured insights.

  - Providers: OpenAI, Anthropic, local Ollama, server-side proxy function
  - Rules-only mode (the default) never touches the network
  - Every call is bounded by a hard timeout
  - Any failure (timeout, non-2xx, malformed JSON) is logged and returns
    None; the caller keeps its rule-based output untouched

Only the summary leaves the process: column lists, per-column
mean/min/max/total and the first N rows.
"""

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import httpx

from datascope.config import settings
from .statistical_analyzer import StatisticalAnalyzer
from .type_inference import ColumnClassification

logger = logging.getLogger(__name__)


class AIProvider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    LOCAL_OLLAMA = "ollama"
    PROXY = "proxy"
    RULES_ONLY = "rules_only"


@dataclass
class AIConfig:
    provider: AIProvider = AIProvider.RULES_ONLY
    model: str = ""
    api_key: str = ""
    base_url: str = ""
    max_tokens: int = 2000
    temperature: float = 0.3
    timeout_seconds: float = 15
    max_retries: int = 1
    sample_rows: int = 20

    @classmethod
    def from_settings(cls) -> "AIConfig":
        try:
            provider = AIProvider(settings.AI_PROVIDER.lower())
        except ValueError:
            logger.warning(f"Unknown AI_PROVIDER '{settings.AI_PROVIDER}', using rules_only")
            provider = AIProvider.RULES_ONLY
        return cls(
            provider=provider,
            model=settings.AI_MODEL,
            api_key=settings.AI_API_KEY,
            base_url=settings.AI_BASE_URL or "",
            timeout_seconds=settings.AI_TIMEOUT,
            sample_rows=settings.AI_SAMPLE_ROWS,
        )


@dataclass
class AIInsights:
    executive_summary: str = ""
    key_insights: List[str] = field(default_factory=list)
    patterns: List[str] = field(default_factory=list)
    anomalies: List[str] = field(default_factory=list)
    recommendations: List[Any] = field(default_factory=list)
    predictions: List[str] = field(default_factory=list)
    business_impact: str = ""
    source: str = ""

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], source: str = "") -> "AIInsights":
        """Accepts both camelCase (browser / proxy) and snake_case keys."""
        def pick(*keys, default=None):
            for k in keys:
                if payload.get(k) is not None:
                    return payload[k]
            return default

        def str_list(value) -> List[str]:
            if isinstance(value, str):
                return [value] if value.strip() else []
            if isinstance(value, list):
                return [str(v) for v in value if v is not None and str(v).strip()]
            return []

        recs = pick("recommendations", "businessRecommendations", default=[])
        return cls(
            executive_summary=str(pick("executiveSummary", "executive_summary", default="")),
            key_insights=str_list(pick("keyInsights", "key_insights")),
            patterns=str_list(pick("patterns")),
            anomalies=str_list(pick("anomalies")),
            recommendations=recs if isinstance(recs, list) else [],
            predictions=str_list(pick("predictions")),
            business_impact=str(pick("businessImpact", "business_impact", default="")),
            source=source,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "executive_summary": self.executive_summary,
            "key_insights": self.key_insights,
            "patterns": self.patterns,
            "anomalies": self.anomalies,
            "recommendations": self.recommendations,
            "predictions": self.predictions,
            "business_impact": self.business_impact,
            "source": self.source,
        }


SYSTEM_PROMPT = """You are an expert business data analyst.
Analyze datasets and provide actionable insights in JSON format.
RULES:
1. NEVER invent columns or numbers that are not in the summary
2. Reference specific numbers from the statistics
3. Keep each insight to one or two sentences"""

RESPONSE_SHAPE = """{
    "executiveSummary": "2-3 sentence overview of key findings",
    "keyInsights": ["insight1", "insight2", "insight3"],
    "patterns": ["pattern1", "pattern2"],
    "anomalies": ["anomaly1", "anomaly2"],
    "recommendations": [
        {"priority": "high", "title": "title", "description": "desc"},
        {"priority": "medium", "title": "title", "description": "desc"}
    ],
    "predictions": ["prediction1", "prediction2"],
    "businessImpact": "Description of business implications"
}"""


def _parse_json_text(text: str) -> Dict[str, Any]:
    """JSON object from a raw or ```json fenced``` completion."""
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        m = re.search(r'```(?:json)?\s*([\s\S]*?)```', text)
        if not m:
            raise ValueError("LLM response is not valid JSON")
        parsed = json.loads(m.group(1))
    if not isinstance(parsed, dict):
        raise ValueError("LLM response JSON is not an object")
    return parsed


def parse_local_response(text: str) -> Dict[str, Any]:
    """Free-text completion → insight payload (local models ignore JSON instructions)."""
    text = (text or "").strip()
    bullets = []
    for line in text.splitlines():
        m = re.match(r'^\s*(?:[-*•]|\d+[.)])\s+(.*\S)', line)
        if m:
            bullets.append(m.group(1))
    return {
        "executiveSummary": text[:200] + ("..." if len(text) > 200 else ""),
        "keyInsights": bullets[:5] or ["AI analysis completed using local model"],
    }


class _PromptBuilder:
    @staticmethod
    def build_summary(table: Sequence[Dict[str, Any]], classification: ColumnClassification,
                      sample_rows: int = 20) -> Dict[str, Any]:
        analyzer = StatisticalAnalyzer()
        statistics = {}
        for col in classification.numeric:
            values = analyzer.column_values(table, col)
            if values:
                stats = analyzer.compute_stats(values)
                statistics[col] = {
                    "mean": stats.mean,
                    "min": stats.min,
                    "max": stats.max,
                    "total": sum(values),
                }
        return {
            "columns": list(table[0].keys()) if table else [],
            "total_rows": len(table),
            "numeric_columns": list(classification.numeric),
            "categorical_columns": list(classification.categorical),
            "date_columns": list(classification.date),
            "statistics": statistics,
            "sample_rows": [dict(r) for r in table[:sample_rows]],
        }

    @staticmethod
    def build_messages(summary: Dict[str, Any]) -> List[Dict[str, str]]:
        user_content = (
            "Dataset Overview:\n"
            f"- Total Records: {summary['total_rows']}\n"
            f"- Columns: {', '.join(map(str, summary['columns']))}\n"
            f"- Numeric Columns: {', '.join(summary['numeric_columns'])}\n"
            f"- Categorical Columns: {', '.join(summary['categorical_columns'])}\n"
            f"- Date Columns: {', '.join(summary['date_columns'])}\n\n"
            f"Statistical Summary:\n{json.dumps(summary['statistics'], indent=2, default=str)}\n\n"
            f"Sample Data (first {len(summary['sample_rows'])} rows):\n"
            f"{json.dumps(summary['sample_rows'], indent=2, default=str)}\n\n"
            f"Return insights in exactly this JSON structure:\n{RESPONSE_SHAPE}"
        )
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_content},
        ]


class _BaseClient:
    async def complete(self, messages, summary, config) -> Dict[str, Any]:
        raise NotImplementedError


class _OpenAIClient(_BaseClient):
    async def complete(self, messages, summary, config):
        headers = {"Content-Type": "application/json", "Authorization": f"Bearer {config.api_key}"}
        base_url = config.base_url or "https://api.openai.com/v1"
        body = {
            "model": config.model or "gpt-4o-mini",
            "messages": messages,
            "max_tokens": config.max_tokens,
            "temperature": config.temperature,
            "response_format": {"type": "json_object"},
        }
        async with httpx.AsyncClient(timeout=config.timeout_seconds) as client:
            resp = await client.post(f"{base_url}/chat/completions", json=body, headers=headers)
            resp.raise_for_status()
            data = resp.json()
        return _parse_json_text(data["choices"][0]["message"]["content"])


class _AnthropicClient(_BaseClient):
    async def complete(self, messages, summary, config):
        headers = {"Content-Type": "application/json", "x-api-key": config.api_key, "anthropic-version": "2023-06-01"}
        system_msg = ""
        user_msgs = []
        for msg in messages:
            if msg["role"] == "system":
                system_msg = msg["content"]
            else:
                user_msgs.append(msg)
        body = {"model": config.model or "claude-sonnet-4-20250514", "max_tokens": config.max_tokens, "messages": user_msgs}
        if system_msg:
            body["system"] = system_msg
        base_url = config.base_url or "https://api.anthropic.com/v1"
        async with httpx.AsyncClient(timeout=config.timeout_seconds) as client:
            resp = await client.post(f"{base_url}/messages", json=body, headers=headers)
            resp.raise_for_status()
            data = resp.json()
        text = "".join(b.get("text", "") for b in data.get("content", []) if b.get("type") == "text")
        return _parse_json_text(text)


class _OllamaClient(_BaseClient):
    async def complete(self, messages, summary, config):
        base_url = config.base_url or "http://localhost:11434"
        prompt = "\n\n".join(m["content"] for m in messages)
        body = {"model": config.model or "llama3.1:8b", "prompt": prompt, "stream": False,
                "options": {"temperature": config.temperature, "num_predict": config.max_tokens}}
        async with httpx.AsyncClient(timeout=config.timeout_seconds) as client:
            resp = await client.post(f"{base_url}/api/generate", json=body)
            resp.raise_for_status()
            data = resp.json()
        text = data.get("response", "")
        try:
            return _parse_json_text(text)
        except ValueError:
            return parse_local_response(text)


class _ProxyClient(_BaseClient):
    """Server-side function that holds the API key and does the prompting itself."""

    async def complete(self, messages, summary, config):
        if not config.base_url:
            raise ValueError("AI_BASE_URL must point at the proxy function")
        body = {
            "dataPreview": summary["sample_rows"],
            "columns": summary["columns"],
            "summary": {
                "totalRows": summary["total_rows"],
                "numericColumns": summary["numeric_columns"],
                "dateColumns": summary["date_columns"],
                "statistics": summary["statistics"],
            },
        }
        async with httpx.AsyncClient(timeout=config.timeout_seconds) as client:
            resp = await client.post(config.base_url, json=body)
            resp.raise_for_status()
            data = resp.json()
        if not isinstance(data, dict):
            raise ValueError("Proxy response is not a JSON object")
        return data


class LLMReasoner:
    def __init__(self, config: Optional[AIConfig] = None):
        self.config = config or AIConfig.from_settings()
        self._prompt_builder = _PromptBuilder()
        self._clients = {
            AIProvider.OPENAI: _OpenAIClient(),
            AIProvider.ANTHROPIC: _AnthropicClient(),
            AIProvider.LOCAL_OLLAMA: _OllamaClient(),
            AIProvider.PROXY: _ProxyClient(),
        }
        self._call_count = 0
        self._failures = 0

    @property
    def enabled(self):
        return self.config.provider != AIProvider.RULES_ONLY

    def build_summary(self, table, classification) -> Dict[str, Any]:
        return self._prompt_builder.build_summary(table, classification, self.config.sample_rows)

    async def generate_insights(self, table, classification) -> Optional[AIInsights]:
        """
        AI insights for the table, or None when disabled or on any failure.
        Never raises for provider errors and never waits past the timeout.
        """
        if not self.enabled:
            return None

        summary = self.build_summary(table, classification)
        messages = self._prompt_builder.build_messages(summary)
        self._call_count += 1
        t0 = time.time()
        try:
            payload = await asyncio.wait_for(
                self._call_provider(messages, summary),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError:
            self._failures += 1
            logger.warning(f"AI insights timed out after {self.config.timeout_seconds}s; using rule-based output")
            return None
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            self._failures += 1
            logger.warning(f"AI insights failed ({type(e).__name__}: {e}); using rule-based output")
            return None

        logger.info(
            f"AI insights from {self.config.provider.value} in {int((time.time() - t0) * 1000)}ms"
        )
        return AIInsights.from_payload(payload, source=self.config.provider.value)

    async def _call_provider(self, messages, summary):
        client = self._clients.get(self.config.provider)
        if not client:
            raise ValueError(f"No client for {self.config.provider}")
        last_err = None
        for attempt in range(self.config.max_retries + 1):
            try:
                return await client.complete(messages, summary, self.config)
            except httpx.HTTPError as e:
                last_err = e
                if attempt < self.config.max_retries:
                    await asyncio.sleep((attempt + 1) * 1.5)
        raise last_err

    def get_stats(self):
        return {
            "provider": self.config.provider.value,
            "enabled": self.enabled,
            "calls": self._call_count,
            "failures": self._failures,
        }
