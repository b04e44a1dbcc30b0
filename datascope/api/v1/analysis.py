"""
Analysis API — Endpoints
=========================
FastAPI router exposing the analysis engine.

Endpoints:
  POST /analysis               — Full analysis of a row set (optionally AI-enhanced)
  POST /analysis/file          — Same, from raw CSV / JSON file contents
  POST /analysis/themes        — Theme detection only
  POST /analysis/correlations  — Ranked pairwise correlations
  POST /analysis/stats         — Descriptive stats + outliers for one value list
  GET  /analysis/health        — Component health check

Structural input problems (empty table, no columns, undecodable file)
return 422 with a user-presentable message; nothing partial is returned.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException

from datascope import __version__
from datascope.core.errors import AnalysisInputError
from datascope.core.ingestion import load_table, validate_table

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/analysis")


# ═══════════════════════════════════════════════════════════════
# ORCHESTRATOR FACTORY (lazy singleton)
# ═══════════════════════════════════════════════════════════════

_orchestrator = None


def _get_orchestrator():
    """The orchestrator holds configuration only, so one instance serves every request."""
    global _orchestrator
    if _orchestrator is None:
        from datascope.core.analysis.orchestrator import AnalysisOrchestrator
        _orchestrator = AnalysisOrchestrator()
    return _orchestrator


def _invalid_input(e: AnalysisInputError) -> HTTPException:
    logger.info(f"Rejected analysis input: {e}")
    return HTTPException(
        status_code=422,
        detail={"error": "invalid_table", "message": str(e)},
    )


# ═══════════════════════════════════════════════════════════════
# REQUEST / RESPONSE SCHEMAS
# ═══════════════════════════════════════════════════════════════

class AnalyzeRequest(BaseModel):
    rows: List[Dict[str, Any]] = Field(..., description="Parsed table: one object per row")
    use_ai: bool = Field(default=False, description="Merge remote AI insights when a provider is configured")
    include_timestamp: bool = False


class FileAnalyzeRequest(BaseModel):
    content: str = Field(..., description="Raw file contents")
    format: str = Field(default="csv", description="csv | json")
    use_ai: bool = False
    include_timestamp: bool = False


class ThemesRequest(BaseModel):
    rows: List[Dict[str, Any]]


class CorrelationRequest(BaseModel):
    rows: List[Dict[str, Any]]
    threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0,
                                       description="Noise floor; defaults to the exploratory threshold")


class StatsRequest(BaseModel):
    values: List[Any] = Field(..., description="Raw cell values; unparseable entries are ignored")


class AnalysisResponse(BaseModel):
    columns: List[str]
    classification: Dict[str, List[str]]
    column_types: Dict[str, str]
    data_quality: Dict[str, Any]
    executive_summary: Dict[str, Any]
    performance: Dict[str, Any] = {}
    demographics: Dict[str, Any] = {}
    temporal: Dict[str, Any] = {}
    statistical: Dict[str, Any] = {}
    correlations: List[Dict[str, Any]] = []
    significant_correlations: List[Dict[str, Any]] = []
    themes: List[Dict[str, Any]] = []
    insights: List[Dict[str, Any]] = []
    recommendations: List[Dict[str, Any]] = []
    ai_insights: Optional[Dict[str, Any]] = None
    source: str = "rules_only"
    counts: Dict[str, int] = {}
    generated_at: Optional[str] = None


class ThemesResponse(BaseModel):
    themes: List[Dict[str, Any]]
    classification: Dict[str, List[str]]


class CorrelationResponse(BaseModel):
    correlations: List[Dict[str, Any]]
    threshold: float
    numeric_columns: List[str]


class StatsResponse(BaseModel):
    stats: Dict[str, Any]
    outliers: List[float] = []
    bounds: Optional[Dict[str, float]] = None


class HealthResponse(BaseModel):
    status: str
    components: Dict[str, str]
    ai: Dict[str, Any] = {}
    version: str
    uptime_seconds: Optional[float] = None


# ═══════════════════════════════════════════════════════════════
# ENDPOINTS
# ═══════════════════════════════════════════════════════════════

_start_time = time.time()


async def _run_analysis(rows, use_ai: bool, include_timestamp: bool) -> AnalysisResponse:
    orchestrator = _get_orchestrator()
    try:
        if use_ai:
            result = await orchestrator.analyze_with_ai(rows, include_timestamp=include_timestamp)
        else:
            result = orchestrator.analyze(rows, include_timestamp=include_timestamp)
    except AnalysisInputError as e:
        raise _invalid_input(e)
    except Exception as e:
        logger.error(f"Analysis error: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={"error": "analysis_failed", "message": "Analysis failed. Please check the data and try again."},
        )
    return AnalysisResponse(**result.to_dict())


@router.post("", response_model=AnalysisResponse)
async def analyze_rows(request: AnalyzeRequest):
    """
    Full pipeline: Type Inference → Data Quality → Sub-analyses →
    Correlations → Themes → Insights → Recommendations → AI merge (optional)
    """
    return await _run_analysis(request.rows, request.use_ai, request.include_timestamp)


@router.post("/file", response_model=AnalysisResponse)
async def analyze_file(request: FileAnalyzeRequest):
    """Decode CSV / JSON text, then run the full pipeline."""
    try:
        rows = load_table(request.content, request.format)
    except AnalysisInputError as e:
        raise _invalid_input(e)
    logger.info(f"Decoded {request.format} upload: {len(rows)} rows")
    return await _run_analysis(rows, request.use_ai, request.include_timestamp)


@router.post("/themes", response_model=ThemesResponse)
async def detect_themes(request: ThemesRequest):
    orchestrator = _get_orchestrator()
    try:
        validate_table(request.rows)
    except AnalysisInputError as e:
        raise _invalid_input(e)
    classification = orchestrator.inferrer.classify(request.rows)
    themes = orchestrator.theme_detector.detect(request.rows, classification)
    return ThemesResponse(
        themes=[t.to_dict() for t in themes],
        classification=classification.to_dict(),
    )


@router.post("/correlations", response_model=CorrelationResponse)
async def compute_correlations(request: CorrelationRequest):
    from datascope.core.analysis.correlation_engine import CorrelationEngine

    orchestrator = _get_orchestrator()
    try:
        validate_table(request.rows)
    except AnalysisInputError as e:
        raise _invalid_input(e)

    threshold = (
        request.threshold if request.threshold is not None
        else orchestrator.config.exploratory_correlation_threshold
    )
    classification = orchestrator.inferrer.classify(request.rows)
    records = CorrelationEngine(threshold).compute(request.rows, classification.numeric)
    return CorrelationResponse(
        correlations=[r.to_dict() for r in records],
        threshold=threshold,
        numeric_columns=classification.numeric,
    )


@router.post("/stats", response_model=StatsResponse)
async def describe_values(request: StatsRequest):
    analyzer = _get_orchestrator().stats
    nums = analyzer.numeric_values(request.values)
    stats = analyzer.compute_stats(nums)
    return StatsResponse(
        stats=stats.to_dict(),
        outliers=analyzer.detect_outliers(nums, stats),
        bounds=analyzer.outlier_bounds(stats),
    )


@router.get("/health", response_model=HealthResponse)
async def health():
    orchestrator = _get_orchestrator()
    components = {
        "type_inference": "ready",
        "statistics": "ready",
        "trends": "ready",
        "correlations": "ready",
        "themes": f"ready ({len(orchestrator.theme_detector.rules)} rules)",
        "ai": "enabled" if orchestrator.reasoner.enabled else "rules_only",
    }
    return HealthResponse(
        status="healthy",
        components=components,
        ai=orchestrator.reasoner.get_stats(),
        version=__version__,
        uptime_seconds=round(time.time() - _start_time, 1),
    )
